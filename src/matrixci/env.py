# env.py
from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def compose_env(base: Mapping[str, Any], *overlays: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Layer environments: base < job overlay < step overlay.

    Always returns a fresh dict; none of the inputs are mutated, so jobs
    running side by side never see each other's overlays.
    """
    env = {k: _stringify(v) for k, v in base.items()}
    for layer in overlays:
        if not layer:
            continue
        env.update({k: _stringify(v) for k, v in layer.items()})
    return env


def base_env(workflow_env: Optional[Mapping[str, Any]] = None, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """Process environment plus workflow-level `env:` (e.g. RUSTFLAGS)."""
    return compose_env(os.environ if environ is None else environ, workflow_env)
