# cli.py
from __future__ import annotations

import json
import subprocess
import sys
import threading
from pathlib import Path
from typing import List

import click

from matrixci.actions import default_actions
from matrixci.conditions import evaluate
from matrixci.config import load_settings
from matrixci.errors import ConfigurationError
from matrixci.git_facts.git import head_sha
from matrixci.loader import load_workflow
from matrixci.model import JobPlan, PipelineResult
from matrixci.planner import plan_workflow
from matrixci.runner import run_pipeline
from matrixci.ui.console import Console, get_console, set_console


DEFAULT_WORKFLOWS = ("matrixci.yml", "matrixci.yaml", ".github/workflows/ci.yml")

EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def find_workflow_files(root: Path = Path(".")) -> list[Path]:
    """
    Find all workflow files in a directory.

    Returns:
        Default workflow files that exist, plus any *_workflow.py files.
    """
    workflow_files = [root / name for name in DEFAULT_WORKFLOWS if (root / name).exists()]
    workflow_files.extend(sorted(root.glob("*_workflow.py")))
    return workflow_files


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  matrixci run --workflow ci.yml",
            )
            sys.exit(EXIT_CONFIG)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=["Looked for:", *(f"  {name}" for name in DEFAULT_WORKFLOWS), "  *_workflow.py"],
            suggestion="Specify a workflow explicitly:\n  matrixci run --workflow ci.yml",
        )
        sys.exit(EXIT_CONFIG)

    if len(workflow_files) > 1:
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[str(f) for f in workflow_files],
            suggestion="Specify a workflow explicitly:\n  matrixci run --workflow matrixci.yml",
        )
        sys.exit(EXIT_CONFIG)

    return workflow_files[0]


def _load_plans(workflow_path: Path, only: List[str]):
    console = get_console()
    workflow = load_workflow(workflow_path)
    console.print_debug(f"Loaded workflow '{workflow.name}' with {len(workflow.jobs)} job(s) from {workflow_path}")
    plans = plan_workflow(workflow, only=only or None)
    console.print_debug(f"Planned {len(plans)} job(s): {', '.join(p.spec.job_id for p in plans)}")
    return workflow, plans


def _revision() -> str | None:
    try:
        return head_sha()[:12]
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """matrixci: plan and run matrix build-and-test pipelines."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("--workflow", default=None, help="Workflow file (.yml/.yaml/.py)")
@click.option("--only", multiple=True, help="Run only this job key or job id (repeatable)")
@click.option("--workers", default=None, type=int, help="Number of parallel jobs")
@click.option("--step-timeout", default=None, type=float, help="Per-step timeout in seconds")
@click.option("--print-plan/--no-print-plan", default=True, show_default=True, help="Print planned jobs before running")
@click.pass_context
def run(ctx, workflow, only, workers, step_timeout, print_plan):
    """Run a workflow: every matrix job, independently."""
    console = get_console()
    workflow_path = discover_workflow(workflow)

    try:
        settings = load_settings()
        wf, plans = _load_plans(workflow_path, list(only))
    except ConfigurationError as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(EXIT_CONFIG)
    except Exception as e:
        console.print_exception(e)
        sys.exit(EXIT_CONFIG)

    console.print_run_started(workflow=workflow_path.name, job_count=len(plans), revision=_revision())
    if print_plan:
        for plan in plans:
            console.print_plan_job(plan.spec.job_name, plan.spec.runs_on or "host")

    cancel = threading.Event()
    outcome: dict = {}

    def _target() -> None:
        try:
            outcome["result"] = run_pipeline(
                plans,
                actions=default_actions(output_tail=settings.output_tail),
                workflow_env=wf.env,
                root=settings.workdir,
                max_workers=workers or settings.workers,
                cancel=cancel,
                timeout=step_timeout or settings.step_timeout,
                console=console,
            )
        except Exception as e:  # surfaced on the main thread below
            outcome["error"] = e

    worker = threading.Thread(target=_target, name="matrixci-pipeline")
    worker.start()
    interrupted = False
    try:
        while worker.is_alive():
            worker.join(timeout=0.5)
    except KeyboardInterrupt:
        interrupted = True
        console.print_info("\nInterrupted by user, cancelling jobs...")
        cancel.set()
        worker.join()

    if "error" in outcome:
        if isinstance(outcome["error"], ConfigurationError):
            console.print_error("Invalid workflow", str(outcome["error"]))
            sys.exit(EXIT_CONFIG)
        console.print_exception(outcome["error"])
        sys.exit(EXIT_FAILED)

    result: PipelineResult = outcome["result"]
    console.print_results(result)
    if interrupted:
        sys.exit(EXIT_INTERRUPTED)
    if not result.ok:
        sys.exit(EXIT_FAILED)


def _plan_to_dict(plan: JobPlan) -> dict:
    spec = plan.spec
    runs = evaluate(plan.condition, spec.fields)
    return {
        "job_id": spec.job_id,
        "name": spec.job_name,
        "runs_on": spec.runs_on,
        "fields": dict(spec.fields),
        "env": dict(spec.env),
        "runs": runs,
        "steps": [
            {
                "name": step.name,
                "action": step.action,
                "runs": runs and evaluate(step.condition, spec.fields),
                "command": step.run,
                "with": dict(step.with_),
                "env": dict(step.env),
            }
            for step in plan.steps
        ],
    }


@cli.command()
@click.option("--workflow", default=None, help="Workflow file (.yml/.yaml/.py)")
@click.option("--only", multiple=True, help="Show only this job key or job id (repeatable)")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the plan as JSON")
@click.pass_context
def plan(ctx, workflow, only, as_json):
    """Expand the matrix and show what would run, without running it."""
    console = get_console()
    workflow_path = discover_workflow(workflow)

    try:
        _wf, plans = _load_plans(workflow_path, list(only))
    except ConfigurationError as e:
        console.print_error("Invalid workflow", str(e))
        sys.exit(EXIT_CONFIG)
    except Exception as e:
        console.print_exception(e)
        sys.exit(EXIT_CONFIG)

    items = [_plan_to_dict(p) for p in plans]
    if as_json:
        click.echo(json.dumps(items, indent=2, sort_keys=True, default=str))
        return

    for item in items:
        console.print_header(f"{item['name']}  [{item['job_id']}]")
        console.print_info(f"runs-on: {item['runs_on'] or 'host'}")
        for name, value in item["fields"].items():
            console.print_info(f"  {name} = {value!r}")
        for step in item["steps"]:
            mark = "run " if step["runs"] else "skip"
            console.print_info(f"  [{mark}] {step['name']}")


if __name__ == "__main__":
    cli()
