# actions.py
#
# Collaborators the step executor calls out to. Every step names an action
# ("shell", "packages", "toolchain", "lint"); the runner looks it up in a
# registry and calls it with an ActionRequest. Tests swap entries for fakes.

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from .model import ExecutionContext, JobSpec, ResolvedStep


@dataclass(frozen=True)
class ActionRequest:
    job_id: str
    spec: JobSpec
    step: ResolvedStep
    command: str
    env: Mapping[str, str]
    cwd: Path
    context: ExecutionContext
    shell: str | None = None
    cancel: Optional[threading.Event] = None
    timeout: float | None = None


@dataclass
class ActionResult:
    exit_code: int
    output: str = ""
    cancelled: bool = False
    details: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.cancelled


Action = Callable[[ActionRequest], ActionResult]


def default_actions(*, output_tail: int = 4000) -> Dict[str, Action]:
    # Import here to avoid circular import
    from .step_workflows.lint import StaticChecker
    from .step_workflows.packages import PackageInstaller
    from .step_workflows.shell import ShellAction
    from .step_workflows.toolchain import ToolchainInvoker

    shell = ShellAction(output_tail=output_tail)
    return {
        "shell": shell,
        "packages": PackageInstaller(shell),
        "toolchain": ToolchainInvoker(shell),
        "lint": StaticChecker(shell),
    }


KNOWN_ACTIONS = ("shell", "packages", "toolchain", "lint")
