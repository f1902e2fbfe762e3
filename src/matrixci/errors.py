# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - fixing the workflow declaration without a traceback
    """
    kind: str
    message: str
    job: str | None = None
    step: str | None = None
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.job:
            lines.append(f"job={self.job}")
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


@dataclass
class ConfigurationError(CIError):
    """
    Authoring mistake in the workflow (empty dimension, dangling override,
    unknown field in a condition...). Always raised before any job runs.
    """
    kind: str = "ConfigurationError"
    message: str = ""


@dataclass
class StepFailure(CIError):
    """An invoked action reported a non-zero / abnormal outcome."""
    kind: str = "StepFailed"
    message: str = ""
    exit_code: int = 1

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.message}"


def config_error(message: str, *, job: str | None = None, step: str | None = None, **details) -> ConfigurationError:
    return ConfigurationError(message=message, job=job, step=step, details=details)
