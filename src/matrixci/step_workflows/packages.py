# step_workflows/packages.py
from __future__ import annotations

import shlex
from dataclasses import replace
from typing import Any, List

from ..actions import Action, ActionRequest, ActionResult
from ..errors import StepFailure
from ..model import Step


# ---------------------------------------------------------------------
# Package step helper
# ---------------------------------------------------------------------

def packages_step(
    name: str,
    packages: str,
    *,
    if_: str | None = None,
) -> Step:
    """Install system-level build dependencies, e.g. "gcc-multilib g++-multilib"."""
    return Step(name=name, action="packages", with_={"packages": packages}, if_=if_)


# ---------------------------------------------------------------------
# Package step execution
# ---------------------------------------------------------------------

def _split(packages: Any) -> List[str]:
    if isinstance(packages, (list, tuple)):
        return [str(p) for p in packages if str(p).strip()]
    return shlex.split(str(packages or ""))


def install_command(os_family: str, packages: List[str]) -> str:
    names = " ".join(shlex.quote(p) for p in packages)
    if os_family == "linux":
        return f"sudo apt update && sudo apt install -y {names}"
    if os_family == "macos":
        return f"brew install {names}"
    raise ValueError(f"No package manager known for os={os_family!r}")


class PackageInstaller:
    """Installs `with.packages` with the host's package manager."""

    def __init__(self, shell: Action):
        self.shell = shell

    def __call__(self, request: ActionRequest) -> ActionResult:
        packages = _split(request.step.with_.get("packages"))
        if not packages:
            # Normally gated by a `packages != ''` condition; nothing to do.
            return ActionResult(exit_code=0, output="no packages requested")

        try:
            cmd = install_command(request.context.os, packages)
        except ValueError as e:
            raise StepFailure(
                kind="UnsupportedPlatform",
                job=request.job_id,
                step=request.step.name,
                message=str(e),
                details={"os": request.context.os},
            ) from e

        return self.shell(replace(request, command=cmd, shell="bash"))
