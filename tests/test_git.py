from __future__ import annotations

import subprocess

import pytest

from matrixci.errors import StepFailure
from matrixci.git_facts import git
from matrixci.git_facts.git import fetch_source, submodule_args


def test_submodule_args():
    assert submodule_args(None) is None
    assert submodule_args(False) is None
    assert submodule_args(True) == ["submodule", "update", "--init"]
    assert submodule_args("recursive") == ["submodule", "update", "--init", "--recursive"]
    with pytest.raises(ValueError):
        submodule_args("shallow")


def test_fetch_source_requires_tree(tmp_path):
    with pytest.raises(StepFailure) as exc:
        fetch_source(tmp_path / "missing", None, job="lint")
    assert exc.value.kind == "SourceMissing"


def test_fetch_source_updates_submodules(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setattr(git, "_git", lambda args, cwd=None: calls.append((args, cwd)) or "")

    fetch_source(tmp_path, {"submodules": "recursive"}, job="test[a]")
    fetch_source(tmp_path, {}, job="test[b]")

    assert calls == [(["submodule", "update", "--init", "--recursive"], tmp_path)]


def test_fetch_source_failure(tmp_path, monkeypatch):
    def fail(args, cwd=None):
        raise subprocess.CalledProcessError(128, ["git", *args], output="fatal: not a git repository")

    monkeypatch.setattr(git, "_git", fail)
    with pytest.raises(StepFailure) as exc:
        fetch_source(tmp_path, {"submodules": True}, job="test[a]")
    assert exc.value.exit_code == 128
    assert "not a git repository" in exc.value.details["log_tail"]
