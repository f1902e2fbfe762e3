"""Console output formatting utilities for matrixci."""

from __future__ import annotations

import sys
import threading
from typing import Optional

from ..model import PASSED, PipelineResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, stream=None):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            stream: Where normal output goes (defaults to stdout at write time)
        """
        self.debug = debug
        self.stream = stream
        # jobs run on worker threads; keep each message's lines together
        self._lock = threading.Lock()

    def _out(self, *lines: str, err: bool = False) -> None:
        stream = sys.stderr if err else (self.stream or sys.stdout)
        with self._lock:
            for line in lines:
                print(line, file=stream)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._out(f"\n{title}", "-" * len(title))

    def print_run_started(self, workflow: str, job_count: int, revision: str | None = None) -> None:
        """Print run start information."""
        lines = ["\nRUN STARTED", f"Workflow: {workflow}"]
        if revision:
            lines.append(f"Revision: {revision}")
        lines.extend([f"Jobs: {job_count}", ""])
        self._out(*lines)

    def print_plan_job(self, name: str, reason: str) -> None:
        """Print job selection plan."""
        self._out(f"  {name} ({reason})")

    def print_job_start(self, name: str) -> None:
        self._out(f"\nJOB STARTED: {name}")

    def print_step(self, name: str) -> None:
        self._out(f"STEP: {name}")

    def print_step_skipped(self, name: str) -> None:
        self._out(f"STEP SKIPPED: {name} (condition is false)")

    def print_job_skipped(self, name: str, reason: str) -> None:
        self._out(f"JOB SKIPPED: {name} ({reason})")

    def print_job_status(self, name: str, status: str, skipped_steps: int = 0) -> None:
        suffix = f", {skipped_steps} step(s) skipped" if skipped_steps else ""
        self._out(f"STATUS [{name}]: {status}{suffix}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        is_job: bool = False,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Job or step name
            reason: Failure reason/error message (or captured output)
            exit_code: Optional exit code
            hint: Optional hint for user
            is_job: If True, print "JOB FAILED", otherwise "STEP FAILED"
        """
        prefix = "JOB FAILED" if is_job else "STEP FAILED"
        lines = [f"{prefix}: {name}"]
        if exit_code is not None:
            lines.append(f"Exit code: {exit_code}")
        if hint:
            lines.append(f"Hint: {hint}")
        if self.debug:
            lines.append(f"Error details: {reason}")
        else:
            # Show the last line of output for non-debug mode
            tail = (reason or "").strip().splitlines()
            if tail:
                lines.append(f"Error: {tail[-1]}")
        self._out(*lines)

    def print_results(self, result: PipelineResult) -> None:
        """Print final results summary."""
        lines = ["\n" + "=" * 40, "RESULTS", "=" * 40]
        for job in result.jobs:
            status_display = "SUCCESS" if job.status == PASSED else job.status.upper()
            if job.skipped_steps:
                status_display += f" ({job.skipped_steps} skipped)"
            lines.append(f"  {job.job_name}: {status_display}")
        self._out(*lines)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        if details:
            lines.extend(f"  {detail}" for detail in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._out(*lines, err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._out(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        self._out(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._out(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
