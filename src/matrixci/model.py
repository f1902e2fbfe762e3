# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


# Step statuses
PASSED = "passed"
FAILED = "failed"
SKIPPED = "skipped"
CANCELLED = "cancelled"
SKIPPED_CANCELLED = "skipped(cancelled)"

# Job statuses (PASSED / FAILED / SKIPPED / CANCELLED are shared with steps)
PENDING = "pending"
RUNNING = "running"

# Value given to a matrix field that no default and no applicable record sets.
UNSET = ""


# ---------------------------------------------------------------------
# Static definition (loaded once per pipeline)
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Dimension:
    """A named matrix axis with ordered values (e.g. thing = [i686-linux, ...])."""
    name: str
    values: tuple


@dataclass(frozen=True)
class OverrideRecord:
    """
    One "include" entry.

    key=None  -> default record, applied to every job of the matrix
    key=value -> applied only to the job whose driving value equals `key`
    """
    fields: Mapping[str, Any]
    key: Any = None

    @property
    def is_default(self) -> bool:
        return self.key is None


@dataclass(frozen=True)
class Matrix:
    dimension: Dimension
    include: tuple = ()
    defaults: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Step:
    """
    A single unit of work inside a job.

    `run` and the values of `with_` may contain ${{ matrix.<field> }}
    templates. `env` is either a mapping or a reference to a mapping field
    (e.g. "${{ matrix.custom_env }}").
    """
    name: str
    run: str = ""
    action: str = "shell"
    with_: Mapping[str, Any] = field(default_factory=dict)
    if_: str | None = None
    env: Mapping[str, Any] | str | None = None
    shell: str | None = None
    cwd: str | None = None


@dataclass
class Job:
    """A job definition: steps + where it runs + optional matrix."""
    name: str
    steps: List[Step]
    key: str = ""
    runs_on: str = ""
    env: Dict[str, str] = field(default_factory=dict)
    if_: str | None = None
    matrix: Optional[Matrix] = None
    checkout: Dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if not self.key:
            self.key = self.name


@dataclass
class Workflow:
    name: str
    jobs: List[Job]
    env: Dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------
# Plan (derived once per run)
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class JobSpec:
    """Fully resolved fields of one concrete job."""
    job_id: str
    job_name: str
    identity: Any
    fields: Mapping[str, Any]
    env: Mapping[str, str]
    runs_on: str

    def __getitem__(self, name: str) -> Any:
        return self.fields[name]

    def get(self, name: str, default: Any = None) -> Any:
        return self.fields.get(name, default)

    @property
    def target(self) -> str:
        return str(self.fields.get("target", UNSET))


@dataclass(frozen=True)
class ResolvedStep:
    name: str
    run: str
    action: str
    with_: Mapping[str, Any]
    condition: Any  # conditions.Condition | None
    env: Mapping[str, str]
    shell: str | None
    cwd: str | None


@dataclass(frozen=True)
class JobPlan:
    spec: JobSpec
    steps: tuple
    condition: Any = None
    checkout: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class ExecutionContext:
    """Where a job runs. Supplied by the caller, never computed from a JobSpec."""
    os: str
    arch: str
    label: str = ""


# ---------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------

@dataclass
class StepResult:
    name: str
    status: str
    exit_code: int | None = None
    duration: float = 0.0
    output: str = ""
    error: str | None = None


@dataclass
class JobResult:
    job_id: str
    job_name: str
    status: str = PENDING
    steps: List[StepResult] = field(default_factory=list)
    error: str | None = None
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status in (PASSED, SKIPPED)

    @property
    def skipped_steps(self) -> int:
        return sum(1 for s in self.steps if s.status in (SKIPPED, SKIPPED_CANCELLED))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "job_name": self.job_name,
            "status": self.status,
            "error": self.error,
            "duration": round(self.duration, 3),
            "steps": [
                {"name": s.name, "status": s.status, "exit_code": s.exit_code}
                for s in self.steps
            ],
        }


@dataclass
class PipelineResult:
    jobs: List[JobResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(j.ok for j in self.jobs)

    @property
    def failed(self) -> List[JobResult]:
        return [j for j in self.jobs if j.status == FAILED]

    def summary(self) -> Dict[str, str]:
        return {j.job_id: j.status for j in self.jobs}

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "jobs": [j.to_dict() for j in self.jobs]}
