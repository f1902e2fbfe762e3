# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes all Git interactions so the rest of the codebase
# never needs to call subprocess("git ...") directly. It is also the default
# Source Fetcher: the runner calls fetch_source() once per job, before the
# job's first step.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any, List, Mapping, Optional

from ..errors import StepFailure


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    This is the single low-level entry point for all Git operations in this file.

    Args:
        args: List of git arguments (e.g. ["status", "--porcelain"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError if git exits non-zero.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
        stderr=subprocess.STDOUT,
    )
    return out.strip()


def head_sha(cwd: Optional[str | Path] = None) -> str:
    """Full SHA of HEAD, shown in the run header for provenance."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def submodule_args(submodules: Any) -> List[str] | None:
    """
    Map the checkout `submodules` setting to `git submodule` arguments.

      false / "" / None   -> None (leave submodules alone)
      true                -> update --init
      "recursive"         -> update --init --recursive
    """
    if submodules in (None, False, "", "false"):
        return None
    if submodules in (True, "true"):
        return ["submodule", "update", "--init"]
    if submodules == "recursive":
        return ["submodule", "update", "--init", "--recursive"]
    raise ValueError(f"Unsupported submodules setting: {submodules!r}")


def fetch_source(root: Path, checkout: Optional[Mapping[str, Any]], *, job: str = "") -> None:
    """
    Materialize the working tree for one job.

    The tree itself is provided by the caller (this runner works in an
    existing checkout); only nested sub-trees are fetched here.
    """
    if not root.exists():
        raise StepFailure(
            kind="SourceMissing",
            job=job,
            step="checkout",
            message=f"working tree not found: {root}",
        )
    if not checkout:
        return

    args = submodule_args(checkout.get("submodules"))
    if args is None:
        return

    try:
        _git(args, cwd=root)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        output = getattr(e, "output", None) or str(e)
        raise StepFailure(
            kind="SourceFetchFailed",
            job=job,
            step="checkout",
            message=f"git {' '.join(args)} failed",
            exit_code=getattr(e, "returncode", 1),
            details={"log_tail": output[-2000:]},
        ) from e
