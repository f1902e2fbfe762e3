# step_workflows/shell.py
from __future__ import annotations

import subprocess
import sys
import time
from typing import Dict, List

from ..actions import ActionRequest, ActionResult
from ..errors import StepFailure


# shell name -> argv prefix; the command is appended as the last argument
SHELLS: Dict[str, List[str]] = {
    "bash": ["bash", "--noprofile", "--norc", "-eo", "pipefail", "-c"],
    "sh": ["sh", "-e", "-c"],
    "python": [sys.executable, "-c"],
}

POLL_SECONDS = 0.2
TERMINATE_GRACE_SECONDS = 5.0


def shell_argv(shell: str | None, command: str) -> List[str] | str:
    """argv for a shell binding; a plain string means "use the platform shell"."""
    if shell is None:
        return command
    try:
        return [*SHELLS[shell], command]
    except KeyError:
        raise ValueError(f"Unknown shell: {shell!r}") from None


class ShellAction:
    """Run a step command through its shell binding, honoring cancellation."""

    def __init__(self, output_tail: int = 4000):
        self.output_tail = output_tail

    def __call__(self, request: ActionRequest) -> ActionResult:
        if not request.cwd.exists():
            raise StepFailure(
                kind="BadWorkingDirectory",
                job=request.job_id,
                step=request.step.name,
                message=f"cwd not found: {request.cwd}",
                details={"cwd": str(request.cwd)},
            )

        argv = shell_argv(request.shell, request.command)
        try:
            proc = subprocess.Popen(
                argv,
                shell=isinstance(argv, str),
                cwd=str(request.cwd),
                env=dict(request.env),
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise StepFailure(
                kind="SpawnFailed",
                job=request.job_id,
                step=request.step.name,
                message=str(e),
                details={"command": request.command},
            ) from e

        started = time.monotonic()
        chunks: List[str] = []
        cancelled = False

        while True:
            try:
                out, _ = proc.communicate(timeout=POLL_SECONDS)
                chunks.append(out or "")
                break
            except subprocess.TimeoutExpired:
                pass

            if request.cancel is not None and request.cancel.is_set():
                cancelled = True
                chunks.append(self._stop(proc))
                break

            if request.timeout is not None and time.monotonic() - started > request.timeout:
                tail = self._stop(proc)
                raise StepFailure(
                    kind="StepTimeout",
                    job=request.job_id,
                    step=request.step.name,
                    message=f"timed out after {request.timeout:g}s",
                    exit_code=proc.returncode if proc.returncode is not None else -1,
                    details={"command": request.command, "log_tail": tail[-self.output_tail:]},
                )

        output = "".join(chunks)[-self.output_tail:]
        return ActionResult(exit_code=proc.returncode, output=output, cancelled=cancelled)

    @staticmethod
    def _stop(proc: subprocess.Popen) -> str:
        proc.terminate()
        try:
            out, _ = proc.communicate(timeout=TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            proc.kill()
            out, _ = proc.communicate()
        return out or ""
