# config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import config_error


DEFAULT_OUTPUT_TAIL = 4000


@dataclass(frozen=True)
class Settings:
    workers: Optional[int] = None         # None -> cpu_count - 1
    step_timeout: Optional[float] = None  # seconds, None -> no limit
    output_tail: int = DEFAULT_OUTPUT_TAIL
    workdir: str = "."


def _number(environ: Mapping[str, str], name: str, kind):
    raw = environ.get(name, "").strip()
    if not raw:
        return None
    try:
        value = kind(raw)
    except ValueError:
        raise config_error(f"{name} must be a number, got {raw!r}", variable=name) from None
    if value <= 0:
        raise config_error(f"{name} must be positive, got {raw!r}", variable=name)
    return value


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    environ = os.environ if environ is None else environ
    return Settings(
        workers=_number(environ, "MATRIXCI_WORKERS", int),
        step_timeout=_number(environ, "MATRIXCI_STEP_TIMEOUT", float),
        output_tail=_number(environ, "MATRIXCI_OUTPUT_TAIL", int) or DEFAULT_OUTPUT_TAIL,
        workdir=environ.get("MATRIXCI_WORKDIR", "."),
    )
