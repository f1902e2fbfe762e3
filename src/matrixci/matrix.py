# matrix.py
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Set

from .conditions import render
from .errors import config_error
from .model import UNSET, Job, JobSpec, Matrix


# ---------------------------------------------------------------------
# Core idea
# ---------------------------------------------------------------------
# For every value of the driving dimension:
#
#   fields = global defaults (every schema field, "" if undeclared)
#   fields[dimension] = value
#   for overlay in [unkeyed records..., records keyed to value...]:
#       fields.update(overlay)           # declaration order, later wins
#
# Overlays are computed as an explicit ordered list so resolution order
# can be inspected (and tested) on its own.
# ---------------------------------------------------------------------


def schema_fields(matrix: Matrix) -> Set[str]:
    """Every field name a job of this matrix carries after expansion."""
    names = {matrix.dimension.name}
    names.update(matrix.defaults.keys())
    for record in matrix.include:
        names.update(record.fields.keys())
    return names


def check_matrix(matrix: Matrix, *, job: str) -> None:
    values = list(matrix.dimension.values)
    if not values:
        raise config_error(
            f"Matrix dimension '{matrix.dimension.name}' has no values",
            job=job,
            dimension=matrix.dimension.name,
        )

    seen: List[Any] = []
    for v in values:
        if v in seen:
            raise config_error(
                f"Duplicate value {v!r} in matrix dimension '{matrix.dimension.name}'",
                job=job,
                dimension=matrix.dimension.name,
            )
        seen.append(v)

    for idx, record in enumerate(matrix.include):
        if record.is_default:
            continue
        if record.key not in values:
            raise config_error(
                f"Override record #{idx} is keyed to {record.key!r}, which is not a value of '{matrix.dimension.name}'",
                job=job,
                dimension=matrix.dimension.name,
                known=", ".join(str(v) for v in values),
            )


def overlays_for(matrix: Matrix, value: Any) -> List[Mapping[str, Any]]:
    """Ordered overlays for one driving value: defaults first, then keyed."""
    defaults = [r.fields for r in matrix.include if r.is_default]
    keyed = [r.fields for r in matrix.include if not r.is_default and r.key == value]
    return defaults + keyed


def resolve_fields(matrix: Matrix, value: Any) -> Dict[str, Any]:
    fields: Dict[str, Any] = {name: UNSET for name in sorted(schema_fields(matrix))}
    fields.update(matrix.defaults)
    fields[matrix.dimension.name] = value
    for overlay in overlays_for(matrix, value):
        fields.update(overlay)
    return fields


def expand(matrix: Matrix, *, job: str = "") -> List[Dict[str, Any]]:
    """
    Field maps in driving-dimension order, one per value.

    Raises ConfigurationError on an empty dimension or a dangling override.
    """
    check_matrix(matrix, job=job)
    return [resolve_fields(matrix, v) for v in matrix.dimension.values]


def expand_job(job: Job) -> List[JobSpec]:
    """Turn one job definition into its JobSpecs (a single one without a matrix)."""
    if job.matrix is None:
        return [_job_spec(job, identity=None, fields={})]
    return [
        _job_spec(job, identity=fields[job.matrix.dimension.name], fields=fields)
        for fields in expand(job.matrix, job=job.key)
    ]


def _job_spec(job: Job, *, identity: Any, fields: Dict[str, Any]) -> JobSpec:
    if identity is None:
        job_id, job_name = job.key, job.name
    else:
        job_id, job_name = f"{job.key}[{identity}]", f"{job.name} ({identity})"

    env = {k: render(str(v), fields, job=job_id) for k, v in (job.env or {}).items()}
    runs_on = render(job.runs_on or "", fields, job=job_id)

    return JobSpec(
        job_id=job_id,
        job_name=job_name,
        identity=identity,
        fields=dict(fields),
        env=env,
        runs_on=runs_on,
    )
