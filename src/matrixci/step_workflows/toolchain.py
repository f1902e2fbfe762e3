# step_workflows/toolchain.py
from __future__ import annotations

import shlex
from dataclasses import replace
from typing import Mapping

from ..actions import Action, ActionRequest, ActionResult
from ..errors import StepFailure
from ..model import Step


COMMANDS = ("setup", "add-target", "build", "test")


# ---------------------------------------------------------------------
# Toolchain step helper
# ---------------------------------------------------------------------

def toolchain_step(
    name: str,
    command: str,
    *,
    toolchain: str = "stable",
    target: str = "",
    args: str = "",
    if_: str | None = None,
    env: Mapping[str, str] | str | None = None,
) -> Step:
    """
    A compiler toolchain invocation.

    command:
      setup       rustup update <toolchain> && rustup default <toolchain>
      add-target  rustup target add <target>
      build/test  cargo <command> --target <target> [args]
    """
    if command not in COMMANDS:
        raise ValueError(f"Unknown toolchain command: {command!r} (expected one of {', '.join(COMMANDS)})")
    return Step(
        name=name,
        action="toolchain",
        with_={"command": command, "toolchain": toolchain, "target": target, "args": args},
        if_=if_,
        env=env,
        shell="bash",
    )


# ---------------------------------------------------------------------
# Toolchain step execution
# ---------------------------------------------------------------------

def toolchain_command(params: Mapping[str, str]) -> str:
    command = params.get("command", "")
    toolchain = params.get("toolchain") or "stable"
    target = params.get("target", "")
    args = (params.get("args") or "").strip()

    if command == "setup":
        tc = shlex.quote(toolchain)
        return f"rustup update {tc} --no-self-update && rustup default {tc}"

    if not target:
        raise ValueError(f"toolchain command {command!r} needs a target triple")

    if command == "add-target":
        return f"rustup target add {shlex.quote(target)}"
    if command in ("build", "test"):
        return f"cargo {command} --target {shlex.quote(target)} {args}".strip()

    raise ValueError(f"Unknown toolchain command: {command!r}")


class ToolchainInvoker:
    """Runs rustup / cargo for the step's target triple."""

    def __init__(self, shell: Action):
        self.shell = shell

    def __call__(self, request: ActionRequest) -> ActionResult:
        params = {k: str(v) for k, v in request.step.with_.items()}
        if not params.get("target") and request.spec.target:
            params["target"] = request.spec.target

        try:
            cmd = toolchain_command(params)
        except ValueError as e:
            raise StepFailure(
                kind="BadToolchainStep",
                job=request.job_id,
                step=request.step.name,
                message=str(e),
                details=params,
            ) from e

        return self.shell(replace(request, command=cmd, shell=request.shell or "bash"))
