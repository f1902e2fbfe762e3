from __future__ import annotations

import io
from typing import Dict, List

import pytest

from matrixci.actions import KNOWN_ACTIONS, ActionRequest, ActionResult
from matrixci.model import ExecutionContext
from matrixci.ui.console import Console


class FakeAction:
    """Records every request; exit code per step name (default 0)."""

    def __init__(self, exit_codes: Dict[str, int] | None = None):
        self.exit_codes = dict(exit_codes or {})
        self.calls: List[ActionRequest] = []

    def __call__(self, request: ActionRequest) -> ActionResult:
        self.calls.append(request)
        return ActionResult(exit_code=self.exit_codes.get(request.step.name, 0), output=f"ran {request.step.name}")

    @property
    def step_names(self) -> List[str]:
        return [r.step.name for r in self.calls]


@pytest.fixture
def fake_actions() -> Dict[str, FakeAction]:
    return {name: FakeAction() for name in KNOWN_ACTIONS}


@pytest.fixture
def quiet_console() -> Console:
    return Console(stream=io.StringIO())


@pytest.fixture
def linux() -> ExecutionContext:
    return ExecutionContext(os="linux", arch="x86_64", label="ubuntu-latest")
