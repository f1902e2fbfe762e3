# planner.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from .actions import KNOWN_ACTIONS
from .conditions import parse_condition, render, resolve_ref, validate
from .errors import config_error
from .git_facts.git import submodule_args
from .matrix import expand_job, schema_fields
from .model import Job, JobPlan, JobSpec, ResolvedStep, Step, Workflow
from .step_workflows.shell import SHELLS


def plan_workflow(workflow: Workflow, *, only: Optional[Iterable[str]] = None) -> List[JobPlan]:
    """
    Build the whole plan before anything runs.

    Every authoring mistake (empty dimension, dangling override, unknown
    field in a condition or template, unknown shell/action) surfaces here
    as a ConfigurationError.
    """
    plans: List[JobPlan] = []
    seen: Set[str] = set()

    for job in workflow.jobs:
        for plan in plan_job(job):
            if plan.spec.job_id in seen:
                raise config_error(f"Duplicate job id: {plan.spec.job_id}", job=plan.spec.job_id)
            seen.add(plan.spec.job_id)
            plans.append(plan)

    if only:
        plans = select_plans(plans, only)
    return plans


def select_plans(plans: List[JobPlan], only: Iterable[str]) -> List[JobPlan]:
    wanted = list(only)
    known = {p.spec.job_id for p in plans} | {_job_key(p) for p in plans}
    unknown = [w for w in wanted if w not in known]
    if unknown:
        raise config_error(
            f"Unknown job selector(s): {', '.join(unknown)}",
            known=", ".join(sorted(known)),
        )
    return [p for p in plans if p.spec.job_id in wanted or _job_key(p) in wanted]


def _job_key(plan: JobPlan) -> str:
    return plan.spec.job_id.split("[", 1)[0]


def plan_job(job: Job) -> List[JobPlan]:
    if not job.steps:
        raise config_error("Job has no steps", job=job.key)

    if job.checkout:
        try:
            submodule_args(job.checkout.get("submodules"))
        except ValueError as e:
            raise config_error(str(e), job=job.key) from e

    schema = schema_fields(job.matrix) if job.matrix is not None else set()

    job_condition = parse_condition(job.if_)
    validate(job_condition, schema, job=job.key)

    step_conditions = []
    for step in job.steps:
        _check_step(job, step)
        cond = parse_condition(step.if_)
        validate(cond, schema, job=job.key, step=step.name)
        step_conditions.append(cond)

    plans = []
    for spec in expand_job(job):
        steps = tuple(
            _resolve_step(spec, step, cond)
            for step, cond in zip(job.steps, step_conditions)
        )
        plans.append(JobPlan(spec=spec, steps=steps, condition=job_condition, checkout=job.checkout))
    return plans


def _check_step(job: Job, step: Step) -> None:
    if step.action not in KNOWN_ACTIONS:
        raise config_error(
            f"Unknown action '{step.action}'",
            job=job.key,
            step=step.name,
            known=", ".join(KNOWN_ACTIONS),
        )
    if step.shell is not None and step.shell not in SHELLS:
        raise config_error(
            f"Unknown shell '{step.shell}'",
            job=job.key,
            step=step.name,
            known=", ".join(SHELLS),
        )
    if step.action == "shell" and not step.run.strip():
        raise config_error("Shell step has no command", job=job.key, step=step.name)


def _resolve_step(spec: JobSpec, step: Step, condition: Any) -> ResolvedStep:
    fields = spec.fields
    name = render(step.name, fields, job=spec.job_id)
    return ResolvedStep(
        name=name,
        run=render(step.run, fields, job=spec.job_id, step=name),
        action=step.action,
        with_={k: resolve_ref(v, fields, job=spec.job_id, step=name) for k, v in step.with_.items()},
        condition=condition,
        env=_resolve_env(spec, step, name),
        shell=step.shell,
        cwd=step.cwd,
    )


def _resolve_env(spec: JobSpec, step: Step, name: str) -> Dict[str, str]:
    env: Any = step.env
    if env is None:
        return {}
    if isinstance(env, str):
        env = resolve_ref(env, spec.fields, job=spec.job_id, step=name)
        if env in ("", None):
            return {}
    if not isinstance(env, Mapping):
        raise config_error(
            "Step env must be a mapping or a reference to a mapping field",
            job=spec.job_id,
            step=name,
            value=repr(env),
        )
    return {str(k): render(str(v), spec.fields, job=spec.job_id, step=name) for k, v in env.items()}
