# conditions.py
#
# The condition language is deliberately tiny. Observed forms:
#   matrix.apt_packages != ''
#   !matrix.build_only
# plus `==` and a bare field reference. Each parses into one of the
# dataclasses below; evaluation is a pure function over a job's fields.

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union

from .errors import config_error


@dataclass(frozen=True)
class Equals:
    field: str
    literal: Any


@dataclass(frozen=True)
class NotEquals:
    field: str
    literal: Any


@dataclass(frozen=True)
class Not:
    field: str


@dataclass(frozen=True)
class IsTrue:
    field: str


Condition = Union[Equals, NotEquals, Not, IsTrue]


_WRAPPED = re.compile(r"^\$\{\{\s*(.*?)\s*\}\}$", re.S)
_FIELD = r"(?:matrix\.)?([A-Za-z_][A-Za-z0-9_-]*)"
_LITERAL = r"('[^']*'|\"[^\"]*\"|true|false|-?\d+)"
_COMPARE = re.compile(rf"^{_FIELD}\s*(==|!=)\s*{_LITERAL}$")
_COMPARE_REVERSED = re.compile(rf"^{_LITERAL}\s*(==|!=)\s*{_FIELD}$")
_NEGATED = re.compile(rf"^!\s*{_FIELD}$")
_BARE = re.compile(rf"^{_FIELD}$")

_TEMPLATE = re.compile(r"\$\{\{\s*(?:matrix\.)?([A-Za-z_][A-Za-z0-9_-]*)\s*\}\}")


def _literal(token: str) -> Any:
    if token[0] in "'\"":
        return token[1:-1]
    if token == "true":
        return True
    if token == "false":
        return False
    return int(token)


def parse_condition(text: str | None) -> Condition | None:
    """Parse an `if:` expression. None / blank means "always run"."""
    if text is None:
        return None
    expr = str(text).strip()
    m = _WRAPPED.match(expr)
    if m:
        expr = m.group(1).strip()
    if not expr:
        return None

    m = _COMPARE.match(expr)
    if m:
        name, op, lit = m.groups()
        return Equals(name, _literal(lit)) if op == "==" else NotEquals(name, _literal(lit))

    m = _COMPARE_REVERSED.match(expr)
    if m:
        lit, op, name = m.groups()
        return Equals(name, _literal(lit)) if op == "==" else NotEquals(name, _literal(lit))

    m = _NEGATED.match(expr)
    if m:
        return Not(m.group(1))

    m = _BARE.match(expr)
    if m and m.group(1) not in ("true", "false"):
        return IsTrue(m.group(1))

    raise config_error(f"Unsupported condition expression: {text!r}", expression=text)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value not in ("", "false", "0")
    return bool(value)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _same(value: Any, literal: Any) -> bool:
    if isinstance(literal, str):
        return _as_text(value) == literal
    if isinstance(literal, bool):
        return _truthy(value) is literal
    return _as_text(value) == _as_text(literal)


def evaluate(condition: Condition | None, fields: Mapping[str, Any]) -> bool:
    if condition is None:
        return True
    value = fields.get(condition.field)
    if isinstance(condition, Equals):
        return _same(value, condition.literal)
    if isinstance(condition, NotEquals):
        return not _same(value, condition.literal)
    if isinstance(condition, Not):
        return not _truthy(value)
    if isinstance(condition, IsTrue):
        return _truthy(value)
    raise TypeError(f"Unknown condition type: {type(condition).__name__}")


def validate(condition: Condition | None, schema: Iterable[str], *, job: str, step: str | None = None) -> None:
    """Fail fast when a condition references a field no job of this matrix has."""
    if condition is None:
        return
    known = set(schema)
    if condition.field not in known:
        raise config_error(
            f"Condition references unknown field '{condition.field}'",
            job=job,
            step=step,
            field=condition.field,
            known=", ".join(sorted(known)) or "<none>",
        )


# ---------------------------------------------------------------------
# Templates: ${{ matrix.target }}
# ---------------------------------------------------------------------

def render(text: str, fields: Mapping[str, Any], *, job: str, step: str | None = None) -> str:
    def sub(m: re.Match) -> str:
        name = m.group(1)
        if name not in fields:
            raise config_error(
                f"Template references unknown field '{name}'",
                job=job,
                step=step,
                field=name,
            )
        return _as_text(fields[name])

    return _TEMPLATE.sub(sub, text)


def resolve_ref(value: Any, fields: Mapping[str, Any], *, job: str, step: str | None = None) -> Any:
    """
    Resolve a whole-string reference ("${{ matrix.custom_env }}") to the
    field's raw value, so mappings survive. Other strings are rendered.
    """
    if not isinstance(value, str):
        return value
    m = _TEMPLATE.fullmatch(value.strip())
    if m:
        name = m.group(1)
        if name not in fields:
            raise config_error(
                f"Template references unknown field '{name}'",
                job=job,
                step=step,
                field=name,
            )
        return fields[name]
    return render(value, fields, job=job, step=step)
