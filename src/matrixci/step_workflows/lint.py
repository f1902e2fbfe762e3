# step_workflows/lint.py
from __future__ import annotations

import shlex
from dataclasses import replace
from typing import List

from ..actions import Action, ActionRequest, ActionResult
from ..model import Job, Step


DEFAULT_LINT_SCRIPT = "./scripts/lint.sh"


# ---------------------------------------------------------------------
# Lint step helper
# ---------------------------------------------------------------------

def lint_step(
    name: str,
    script: str = DEFAULT_LINT_SCRIPT,
    args: str | None = None,
    *,
    cwd: str | None = None,
) -> Step:
    """Create a lint step that runs the repository's lint script."""
    with_ = {"script": script}
    if args:
        with_["args"] = args
    return Step(name=name, action="lint", with_=with_, cwd=cwd, shell="bash")


def lint_job(
    name: str = "Lint",
    *,
    key: str = "lint",
    script: str = DEFAULT_LINT_SCRIPT,
    runs_on: str = "ubuntu-latest",
) -> Job:
    """The static check pass: one fixed job, one fixed step, no matrix."""
    return Job(name=name, key=key, runs_on=runs_on, steps=[lint_step("Lint", script)])


# ---------------------------------------------------------------------
# Lint step execution
# ---------------------------------------------------------------------

def lint_command(script: str, args: str | None) -> str:
    parts: List[str] = [script]
    if args:
        # Split args string into list, handling quoted strings
        parts.extend(shlex.split(args))
    return " ".join(shlex.quote(p) for p in parts)


class StaticChecker:
    def __init__(self, shell: Action):
        self.shell = shell

    def __call__(self, request: ActionRequest) -> ActionResult:
        script = str(request.step.with_.get("script") or DEFAULT_LINT_SCRIPT)
        cmd = lint_command(script, request.step.with_.get("args"))
        return self.shell(replace(request, command=cmd, shell=request.shell or "bash"))
