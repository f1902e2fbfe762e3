# dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .model import Dimension, Job, Matrix, OverrideRecord, Step, Workflow
from .step_workflows.lint import lint_job, lint_step
from .step_workflows.packages import packages_step
from .step_workflows.toolchain import toolchain_step


# ---------------------------------------------------------------------
# Step helper
# ---------------------------------------------------------------------

def sh(
    name: str,
    cmd: str,
    *,
    if_: str | None = None,
    env: Mapping[str, Any] | str | None = None,
    shell: str | None = None,
    cwd: str | None = None,
) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, if_=if_, env=env, shell=shell, cwd=cwd)


# re-exported so workflow files only need `from matrixci.dsl import ...`
packages = packages_step
toolchain = toolchain_step
lint = lint_step


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    key: str | None = None,
    runs_on: str = "",
    env: Optional[Dict[str, str]] = None,
    if_: str | None = None,
    matrix: "Matrix | MatrixBuilder | None" = None,
    checkout: Optional[Dict[str, Any]] = None,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Job:
    steps_final: List[Step] = list(steps)
    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    if isinstance(matrix, MatrixBuilder):
        matrix = matrix.build()

    return Job(
        name=name,
        key=key or "",
        steps=steps_final,
        runs_on=runs_on,
        env=env or {},
        if_=if_,
        matrix=matrix,
        checkout=checkout,
    )


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

class MatrixBuilder:
    """
    Matrix with one driving dimension and "include" override records.

    Example:
        matrix("thing", ["i686-linux", "arm64-macos"], defaults={"build_only": False})
            .include(apt_packages="")
            .include("i686-linux", target="i686-unknown-linux-gnu")
    """
    def __init__(self, dimension: str, values: Iterable[Any], defaults: Optional[Mapping[str, Any]] = None):
        self.dimension = dimension
        self.values = list(values)
        self.defaults = dict(defaults or {})
        self._include: List[OverrideRecord] = []

    def include(self, key: Any = None, /, **fields: Any) -> "MatrixBuilder":
        """Add an override record; without a key it applies to every job."""
        self._include.append(OverrideRecord(fields=fields, key=key))
        return self

    def build(self) -> Matrix:
        return Matrix(
            dimension=Dimension(name=self.dimension, values=tuple(self.values)),
            include=tuple(self._include),
            defaults=dict(self.defaults),
        )


def matrix(dimension: str, values: Iterable[Any], *, defaults: Optional[Mapping[str, Any]] = None) -> MatrixBuilder:
    return MatrixBuilder(dimension, values, defaults)


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def wf(*jobs: Job, name: str = "workflow", env: Optional[Dict[str, str]] = None) -> Workflow:
    """
    Workflow definition helper.

    Users can write:
        from matrixci.dsl import wf, job, sh

        def workflow():
            return wf(
                job(...),
                job(...),
                env={"RUST_BACKTRACE": "1"},
            )
    """
    return Workflow(name=name, jobs=list(jobs), env=dict(env or {}))


__all__ = [
    "sh",
    "packages",
    "toolchain",
    "lint",
    "lint_job",
    "job",
    "matrix",
    "MatrixBuilder",
    "wf",
]
