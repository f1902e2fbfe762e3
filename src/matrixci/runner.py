# runner.py
from __future__ import annotations

import os
import platform
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .actions import Action, ActionRequest, default_actions
from .conditions import evaluate
from .env import base_env, compose_env
from .errors import StepFailure, config_error
from .git_facts.git import fetch_source
from .model import (
    CANCELLED,
    FAILED,
    PASSED,
    RUNNING,
    SKIPPED,
    SKIPPED_CANCELLED,
    ExecutionContext,
    JobPlan,
    JobResult,
    PipelineResult,
    StepResult,
)
from .ui.console import Console, get_console


Provision = Callable[[str], ExecutionContext]
Fetch = Callable[..., None]


# ----------------------------------------------------------------------
# Execution context
# ----------------------------------------------------------------------

_OS_NAMES = {"linux": "linux", "darwin": "macos", "windows": "windows"}
_ARCH_NAMES = {"x86_64": "x86_64", "amd64": "x86_64", "i386": "i686", "i686": "i686", "arm64": "aarch64", "aarch64": "aarch64"}


def host_context(label: str = "") -> ExecutionContext:
    system = platform.system().lower()
    machine = platform.machine().lower()
    return ExecutionContext(
        os=_OS_NAMES.get(system, system),
        arch=_ARCH_NAMES.get(machine, machine),
        label=label,
    )


class _Cancel:
    """Set when either the whole run or this one job is cancelled."""

    def __init__(self, *events: Any):
        self.events = [e for e in events if e is not None]

    def is_set(self) -> bool:
        return any(e.is_set() for e in self.events)


# ----------------------------------------------------------------------
# Step executor (one job)
# ----------------------------------------------------------------------

def run_job(
    plan: JobPlan,
    *,
    actions: Mapping[str, Action],
    base: Mapping[str, str],
    context: ExecutionContext,
    root: Path = Path("."),
    cancel: Any = None,
    fetch: Optional[Fetch] = None,
    timeout: float | None = None,
    console: Optional[Console] = None,
) -> JobResult:
    """
    Run one job's steps strictly in order.

    Returns a JobResult whose status is one of:
      - "passed"     every non-skipped step succeeded
      - "failed"     a step failed; later steps were never invoked
      - "cancelled"  cancel was set; remaining steps are "skipped(cancelled)"
      - "skipped"    the job's own condition was false
    """
    console = console or get_console()
    spec = plan.spec
    result = JobResult(job_id=spec.job_id, job_name=spec.job_name, status=RUNNING)
    started = time.monotonic()
    console.print_job_start(spec.job_name)

    try:
        if not evaluate(plan.condition, spec.fields):
            result.status = SKIPPED
            result.steps = [StepResult(name=s.name, status=SKIPPED) for s in plan.steps]
            console.print_job_skipped(spec.job_name, "condition is false")
            return result

        if cancel is not None and cancel.is_set():
            _mark_cancelled(result, plan, 0)
            console.print_job_status(spec.job_name, result.status, result.skipped_steps)
            return result

        if fetch is not None:
            try:
                fetch(root, plan.checkout, job=spec.job_id)
            except StepFailure as e:
                result.status = FAILED
                result.error = str(e)
                console.print_failure(spec.job_name, str(e), exit_code=e.exit_code, is_job=True)
                return result

        result.status = PASSED
        for idx, step in enumerate(plan.steps):
            if cancel is not None and cancel.is_set():
                _mark_cancelled(result, plan, idx)
                break

            if not evaluate(step.condition, spec.fields):
                result.steps.append(StepResult(name=step.name, status=SKIPPED))
                console.print_step_skipped(step.name)
                continue

            console.print_step(step.name)
            request = ActionRequest(
                job_id=spec.job_id,
                spec=spec,
                step=step,
                command=step.run,
                env=compose_env(base, spec.env, step.env),
                cwd=(root / (step.cwd or ".")).resolve(),
                context=context,
                shell=step.shell,
                cancel=cancel,
                timeout=timeout,
            )

            t0 = time.monotonic()
            try:
                outcome = actions[step.action](request)
            except StepFailure as e:
                result.steps.append(StepResult(
                    name=step.name,
                    status=FAILED,
                    exit_code=e.exit_code,
                    duration=time.monotonic() - t0,
                    error=str(e),
                ))
                result.status = FAILED
                result.error = str(e)
                console.print_failure(step.name, str(e), exit_code=e.exit_code)
                break
            except Exception as e:
                result.steps.append(StepResult(
                    name=step.name,
                    status=FAILED,
                    duration=time.monotonic() - t0,
                    error=f"{type(e).__name__}: {e}",
                ))
                result.status = FAILED
                result.error = f"step '{step.name}' crashed: {type(e).__name__}: {e}"
                console.print_failure(step.name, str(e))
                break

            step_result = StepResult(
                name=step.name,
                status=PASSED,
                exit_code=outcome.exit_code,
                duration=time.monotonic() - t0,
                output=outcome.output,
            )
            result.steps.append(step_result)

            if outcome.cancelled:
                step_result.status = CANCELLED
                _mark_cancelled(result, plan, idx + 1)
                break

            if outcome.exit_code != 0:
                step_result.status = FAILED
                step_result.error = f"exit code {outcome.exit_code}"
                result.status = FAILED
                result.error = f"step '{step.name}' failed (exit={outcome.exit_code})"
                console.print_failure(step.name, outcome.output, exit_code=outcome.exit_code)
                break

        console.print_job_status(spec.job_name, result.status, result.skipped_steps)
        return result
    finally:
        result.duration = time.monotonic() - started


def _mark_cancelled(result: JobResult, plan: JobPlan, start: int) -> None:
    for step in plan.steps[start:]:
        result.steps.append(StepResult(name=step.name, status=SKIPPED_CANCELLED))
    result.status = CANCELLED


# ----------------------------------------------------------------------
# Job runner (all jobs)
# ----------------------------------------------------------------------

def default_workers() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


def check_actions(plans: List[JobPlan], actions: Mapping[str, Action]) -> None:
    missing = sorted({s.action for p in plans for s in p.steps} - set(actions))
    if missing:
        raise config_error(
            f"No action registered for: {', '.join(missing)}",
            known=", ".join(sorted(actions)) or "<none>",
        )


def _provision_and_run(plan: JobPlan, provision: Provision, **kwargs: Any) -> JobResult:
    # provisioning belongs to the job: a host that can't be provided fails only this job
    return run_job(plan, context=provision(plan.spec.runs_on), **kwargs)


def run_pipeline(
    plans: List[JobPlan],
    *,
    actions: Optional[Mapping[str, Action]] = None,
    workflow_env: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    root: str | Path = ".",
    provision: Optional[Provision] = None,
    fetch: Optional[Fetch] = fetch_source,
    max_workers: int | None = None,
    cancel: Any = None,
    job_cancels: Optional[Mapping[str, Any]] = None,
    timeout: float | None = None,
    console: Optional[Console] = None,
) -> PipelineResult:
    """
    Run every planned job independently, one pool task per job.

    Jobs share nothing mutable: each gets its own composed environment and
    execution context. A failing (or crashing) job never stops its siblings.
    Results come back in plan order.
    """
    console = console or get_console()
    actions = actions if actions is not None else default_actions()
    provision = provision or host_context
    base = base_env(workflow_env, environ)
    root_p = Path(root).resolve()
    job_cancels = job_cancels or {}

    results: List[Optional[JobResult]] = [None] * len(plans)
    if not plans:
        return PipelineResult(jobs=[])
    check_actions(plans, actions)

    with ThreadPoolExecutor(max_workers=max_workers or default_workers()) as pool:
        futures: Dict[Any, int] = {}
        for idx, plan in enumerate(plans):
            fut = pool.submit(
                _provision_and_run,
                plan,
                provision,
                actions=actions,
                base=base,
                root=root_p,
                cancel=_Cancel(cancel, job_cancels.get(plan.spec.job_id)),
                fetch=fetch,
                timeout=timeout,
                console=console,
            )
            futures[fut] = idx

        for fut in as_completed(futures):
            idx = futures[fut]
            spec = plans[idx].spec
            try:
                results[idx] = fut.result()
            except Exception as e:
                console.print_failure(spec.job_name, str(e), is_job=True)
                results[idx] = JobResult(job_id=spec.job_id, job_name=spec.job_name, status=FAILED, error=str(e))

    return PipelineResult(jobs=[r for r in results if r is not None])
