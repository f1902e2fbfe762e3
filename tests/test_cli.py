from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from matrixci.cli import cli, find_workflow_files
from matrixci.config import Settings, load_settings
from matrixci.errors import ConfigurationError


EXAMPLE_YAML = Path(__file__).resolve().parents[1] / "examples" / "cross_targets.yml"


def _write(path: Path, steps: str) -> Path:
    path.write_text(
        "jobs:\n"
        "  check:\n"
        "    steps:\n" + steps,
        encoding="utf-8",
    )
    return path


def test_plan_json_shows_skip_decisions():
    result = CliRunner().invoke(cli, ["plan", "--workflow", str(EXAMPLE_YAML), "--json", "--only", "test"])
    assert result.exit_code == 0, result.output
    items = json.loads(result.output)
    assert [i["job_id"] for i in items] == ["test[i686-linux]", "test[aarch64-linux]", "test[arm64-macos]"]

    def runs(item, name):
        return next(s["runs"] for s in item["steps"] if s["name"] == name)

    i686, aarch64, macos = items
    assert runs(i686, "Run tests") is True
    assert runs(aarch64, "Run tests") is False
    assert runs(macos, "Install target-specific APT dependencies") is False


def test_plan_text():
    result = CliRunner().invoke(cli, ["plan", "--workflow", str(EXAMPLE_YAML)])
    assert result.exit_code == 0, result.output
    assert "Test (aarch64-linux)" in result.output
    assert "[skip] Run tests" in result.output


def test_run_passes(tmp_path):
    wf = _write(tmp_path / "ok.yml", (
        "      - name: hello\n"
        "        shell: python\n"
        "        run: print('hello from step')\n"
    ))
    result = CliRunner().invoke(cli, ["run", "--workflow", str(wf)], env={"MATRIXCI_WORKDIR": str(tmp_path)})
    assert result.exit_code == 0, result.output
    assert "check: SUCCESS" in result.output


def test_run_fails_with_exit_code_1(tmp_path):
    wf = _write(tmp_path / "bad.yml", (
        "      - name: boom\n"
        "        shell: python\n"
        "        run: raise SystemExit(4)\n"
        "      - name: never\n"
        "        shell: python\n"
        "        run: print('unreachable')\n"
    ))
    result = CliRunner().invoke(cli, ["run", "--workflow", str(wf)], env={"MATRIXCI_WORKDIR": str(tmp_path)})
    assert result.exit_code == 1
    assert "STEP: never" not in result.output
    assert "check: FAILED" in result.output


def test_run_configuration_error_exits_2(tmp_path):
    wf = _write(tmp_path / "cfg.yml", (
        "      - run: echo hi\n"
        "        if: '!matrix.build_only'\n"
    ))
    result = CliRunner().invoke(cli, ["run", "--workflow", str(wf)])
    assert result.exit_code == 2


def test_missing_workflow_exits_2(tmp_path):
    result = CliRunner().invoke(cli, ["run", "--workflow", str(tmp_path / "missing.yml")])
    assert result.exit_code == 2


def test_find_workflow_files(tmp_path):
    (tmp_path / "matrixci.yml").write_text("jobs: {}\n", encoding="utf-8")
    (tmp_path / "nightly_workflow.py").write_text("", encoding="utf-8")
    assert [p.name for p in find_workflow_files(tmp_path)] == ["matrixci.yml", "nightly_workflow.py"]


def test_settings_from_environment():
    assert load_settings({}) == Settings()
    s = load_settings({"MATRIXCI_WORKERS": "3", "MATRIXCI_STEP_TIMEOUT": "1.5", "MATRIXCI_OUTPUT_TAIL": "10"})
    assert (s.workers, s.step_timeout, s.output_tail) == (3, 1.5, 10)
    with pytest.raises(ConfigurationError):
        load_settings({"MATRIXCI_WORKERS": "many"})
    with pytest.raises(ConfigurationError):
        load_settings({"MATRIXCI_WORKERS": "0"})


def test_plan_unsupported_workflow_type_exits_2(tmp_path):
    wf = tmp_path / "ci.txt"
    wf.write_text("jobs: {}\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["plan", "--workflow", str(wf)])
    assert result.exit_code == 2
    assert "ci.txt" in result.output


def test_debug_flag_traces_loading():
    result = CliRunner().invoke(cli, ["--debug", "plan", "--workflow", str(EXAMPLE_YAML), "--only", "lint"])
    assert result.exit_code == 0, result.output
    assert "[DEBUG] Planned 1 job(s): lint" in result.output
