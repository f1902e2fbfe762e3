# loader.py
from __future__ import annotations

import runpy
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigurationError, config_error
from .model import Dimension, Job, Matrix, OverrideRecord, Step, Workflow


CHECKOUT_ACTION = "actions/checkout"
ACTION_PREFIX = "matrixci/"


# -------------------- Schemas --------------------

class StepDocument(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: Optional[str] = None
    run: Optional[str] = None
    uses: Optional[str] = None
    with_: Dict[str, Any] = Field(default_factory=dict, alias="with")
    if_: Optional[str | bool] = Field(default=None, alias="if")
    env: Optional[Dict[str, Any] | str] = None
    shell: Optional[str] = None
    working_directory: Optional[str] = Field(default=None, alias="working-directory")

    @model_validator(mode="after")
    def _run_or_uses(self) -> "StepDocument":
        if (self.run is None) == (self.uses is None):
            raise ValueError("a step needs exactly one of 'run' or 'uses'")
        return self


class StrategyDocument(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    matrix: Dict[str, Any]
    fail_fast: Optional[bool] = Field(default=None, alias="fail-fast")


class JobDocument(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = None
    runs_on: str = Field(default="", alias="runs-on")
    if_: Optional[str | bool] = Field(default=None, alias="if")
    env: Dict[str, Any] = Field(default_factory=dict)
    strategy: Optional[StrategyDocument] = None
    steps: List[StepDocument] = Field(min_length=1)


class WorkflowDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = "workflow"
    env: Dict[str, Any] = Field(default_factory=dict)
    jobs: Dict[str, JobDocument] = Field(min_length=1)


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a YAML or Python file.

    A YAML file uses the familiar `jobs:` / `strategy.matrix` / `steps:`
    layout. A Python file must define either:
      - workflow() -> Workflow
      - WORKFLOW = Workflow(...)
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix in (".yml", ".yaml"):
        return load_yaml_workflow(wf_path)
    if wf_path.suffix == ".py":
        return load_python_workflow(wf_path)
    raise ValueError(f"Workflow must be a .yml, .yaml or .py file, got: {wf_path.name}")


def load_python_workflow(wf_path: Path) -> Workflow:
    module_name = f"matrixci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    result = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        result = globals_dict["workflow"]()
    elif "WORKFLOW" in globals_dict:
        result = globals_dict["WORKFLOW"]

    if isinstance(result, list) and all(isinstance(j, Job) for j in result):
        result = Workflow(name=wf_path.stem, jobs=result)
    if not isinstance(result, Workflow):
        raise TypeError(
            "Workflow must return/define a Workflow. "
            "Define workflow() -> Workflow or WORKFLOW = wf(job(...), ...)."
        )
    return result


def load_yaml_workflow(wf_path: Path) -> Workflow:
    with wf_path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as e:
            raise config_error(f"Invalid YAML in {wf_path.name}: {e}", file=str(wf_path)) from e
    return parse_workflow(data, source=wf_path.name)


def parse_workflow(data: Any, *, source: str = "<memory>") -> Workflow:
    if not isinstance(data, dict):
        raise config_error("Workflow must be a mapping", file=source)
    # YAML 1.1 reads a bare `on:` key as True; triggers are not ours to handle
    data = {k: v for k, v in data.items() if isinstance(k, str)}
    try:
        doc = WorkflowDocument.model_validate(data)
    except ValidationError as e:
        raise _from_validation(e, source) from e

    jobs = [_job_from_document(key, jd) for key, jd in doc.jobs.items()]
    return Workflow(name=doc.name, jobs=jobs, env={k: str(v) for k, v in doc.env.items()})


def _from_validation(e: ValidationError, source: str) -> ConfigurationError:
    problems = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"])
        problems.append(f"{loc}: {err['msg']}")
    return config_error(
        f"Invalid workflow definition ({len(problems)} problem(s))",
        file=source,
        problems="; ".join(problems),
    )


# ----------------------------------------------------------------------
# Document -> model
# ----------------------------------------------------------------------

def _condition(value: Optional[str | bool], *, job: str, step: str | None = None) -> Optional[str]:
    if value is None or value is True:
        return None
    if value is False:
        raise config_error("Constant false condition; remove the job/step instead", job=job, step=step)
    return value


def _job_from_document(key: str, doc: JobDocument) -> Job:
    checkout: Optional[Dict[str, Any]] = None
    steps: List[Step] = []

    for idx, sd in enumerate(doc.steps):
        label = sd.name or sd.uses or f"step {idx + 1}"
        if sd.uses is not None and sd.uses.split("@", 1)[0] == CHECKOUT_ACTION:
            checkout = dict(sd.with_)
            continue
        steps.append(_step_from_document(key, sd, label))

    return Job(
        name=doc.name or key,
        key=key,
        steps=steps,
        runs_on=doc.runs_on,
        env={k: str(v) for k, v in doc.env.items()},
        if_=_condition(doc.if_, job=key),
        matrix=_matrix_from_document(key, doc.strategy.matrix) if doc.strategy else None,
        checkout=checkout,
    )


def _step_from_document(job: str, sd: StepDocument, label: str) -> Step:
    if sd.uses is not None:
        action = sd.uses.split("@", 1)[0]
        if not action.startswith(ACTION_PREFIX):
            raise config_error(f"Unsupported action '{sd.uses}'", job=job, step=label)
        return Step(
            name=sd.name or action,
            action=action[len(ACTION_PREFIX):],
            with_=dict(sd.with_),
            if_=_condition(sd.if_, job=job, step=label),
            env=sd.env,
            shell=sd.shell,
            cwd=sd.working_directory,
        )

    run = sd.run or ""
    first_line = run.strip().splitlines()[0] if run.strip() else label
    return Step(
        name=sd.name or first_line,
        run=run,
        if_=_condition(sd.if_, job=job, step=label),
        env=sd.env,
        shell=sd.shell,
        cwd=sd.working_directory,
    )


def _matrix_from_document(job: str, raw: Dict[str, Any]) -> Matrix:
    raw = dict(raw)
    include = raw.pop("include", None) or []
    if "exclude" in raw:
        raise config_error("Matrix 'exclude' is not supported", job=job)

    if len(raw) != 1:
        raise config_error(
            f"Matrix must have exactly one dimension, got {len(raw)}",
            job=job,
            dimensions=", ".join(raw) or "<none>",
        )
    (name, values), = raw.items()
    if not isinstance(values, list):
        raise config_error(f"Matrix dimension '{name}' must be a list", job=job, dimension=name)
    if not isinstance(include, list):
        raise config_error("Matrix 'include' must be a list", job=job)

    records = []
    for idx, entry in enumerate(include):
        if not isinstance(entry, dict):
            raise config_error(f"Matrix include entry #{idx} must be a mapping", job=job)
        fields = dict(entry)
        key = fields.pop(name, None)
        records.append(OverrideRecord(fields=fields, key=key))

    return Matrix(dimension=Dimension(name=name, values=tuple(values)), include=tuple(records))
