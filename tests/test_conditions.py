from __future__ import annotations

import pytest

from matrixci.conditions import (
    Equals,
    IsTrue,
    Not,
    NotEquals,
    evaluate,
    parse_condition,
    render,
    resolve_ref,
    validate,
)
from matrixci.errors import ConfigurationError


@pytest.mark.parametrize(
    "text, expected",
    [
        ("matrix.apt_packages != ''", NotEquals("apt_packages", "")),
        ("${{ matrix.apt_packages != '' }}", NotEquals("apt_packages", "")),
        ("!matrix.build_only", Not("build_only")),
        ("matrix.os == 'macos-latest'", Equals("os", "macos-latest")),
        ("'stable' == matrix.rust", Equals("rust", "stable")),
        ("matrix.build_only == true", Equals("build_only", True)),
        ("build_only", IsTrue("build_only")),
        (None, None),
        ("   ", None),
    ],
)
def test_parse(text, expected):
    assert parse_condition(text) == expected


@pytest.mark.parametrize("text", ["matrix.a && matrix.b", "contains(matrix.x, 'y')", "matrix.a != ", "true"])
def test_parse_rejects_unsupported_expressions(text):
    with pytest.raises(ConfigurationError):
        parse_condition(text)


def test_empty_packages_condition():
    cond = parse_condition("matrix.apt_packages != ''")
    assert evaluate(cond, {"apt_packages": ""}) is False
    assert evaluate(cond, {"apt_packages": "gcc-multilib g++-multilib"}) is True


def test_negated_boolean_field():
    cond = parse_condition("!matrix.build_only")
    assert evaluate(cond, {"build_only": False}) is True
    assert evaluate(cond, {"build_only": True}) is False
    assert evaluate(cond, {"build_only": ""}) is True
    assert evaluate(cond, {"build_only": "false"}) is True


def test_equality_renders_booleans_like_yaml():
    assert evaluate(Equals("build_only", "false"), {"build_only": False}) is True
    assert evaluate(Equals("build_only", False), {"build_only": ""}) is True
    assert evaluate(NotEquals("n", 3), {"n": 3}) is False


def test_missing_condition_always_runs():
    assert evaluate(None, {}) is True


def test_validate_unknown_field():
    with pytest.raises(ConfigurationError) as exc:
        validate(Not("buildonly"), {"build_only", "thing"}, job="test", step="Run tests")
    err = exc.value
    assert err.details["field"] == "buildonly"
    assert err.job == "test"
    assert err.step == "Run tests"


def test_validate_known_field():
    validate(Not("build_only"), {"build_only"}, job="test")


def test_render_templates():
    fields = {"target": "i686-unknown-linux-gnu", "build_only": True}
    assert render("cargo build --target ${{ matrix.target }}", fields, job="j") == "cargo build --target i686-unknown-linux-gnu"
    assert render("${{build_only}}", fields, job="j") == "true"
    with pytest.raises(ConfigurationError, match="tgt"):
        render("${{ matrix.tgt }}", fields, job="j")


def test_resolve_ref_keeps_mappings():
    env = {"CC": "aarch64-linux-gnu-gcc"}
    assert resolve_ref("${{ matrix.custom_env }}", {"custom_env": env}, job="j") is env
    assert resolve_ref("x-${{ matrix.t }}", {"t": "y"}, job="j") == "x-y"
    assert resolve_ref(5, {}, job="j") == 5
