from .dsl import job, sh, matrix, wf, packages, toolchain, lint, lint_job
from .errors import CIError, ConfigurationError, StepFailure
from .loader import load_workflow
from .model import Job, Step, Workflow, JobSpec, PipelineResult
from .planner import plan_workflow
from .runner import run_pipeline

__all__ = [
    "job", "sh", "matrix", "wf", "packages", "toolchain", "lint", "lint_job",
    "CIError", "ConfigurationError", "StepFailure",
    "load_workflow", "plan_workflow", "run_pipeline",
    "Job", "Step", "Workflow", "JobSpec", "PipelineResult",
]
