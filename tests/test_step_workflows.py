from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

from matrixci.actions import ActionRequest, default_actions
from matrixci.errors import StepFailure
from matrixci.model import ExecutionContext, JobSpec, ResolvedStep
from matrixci.step_workflows.lint import lint_command, lint_step
from matrixci.step_workflows.packages import PackageInstaller, install_command
from matrixci.step_workflows.shell import ShellAction, shell_argv
from matrixci.step_workflows.toolchain import ToolchainInvoker, toolchain_command, toolchain_step

from .conftest import FakeAction


SPEC = JobSpec(
    job_id="test[i686-linux]",
    job_name="Test (i686-linux)",
    identity="i686-linux",
    fields={"target": "i686-unknown-linux-gnu"},
    env={},
    runs_on="ubuntu-latest",
)


def _request(tmp_path: Path, *, action="shell", run="", with_=None, shell=None, os_family="linux", **kwargs):
    step = ResolvedStep(
        name="step",
        run=run,
        action=action,
        with_=with_ or {},
        condition=None,
        env={},
        shell=shell,
        cwd=None,
    )
    return ActionRequest(
        job_id=SPEC.job_id,
        spec=SPEC,
        step=step,
        command=run,
        env={"PATH": "/usr/bin:/bin", "GREETING": "hello"},
        cwd=tmp_path,
        context=ExecutionContext(os=os_family, arch="x86_64"),
        shell=shell,
        **kwargs,
    )


def test_default_registry_has_every_collaborator():
    assert set(default_actions()) == {"shell", "packages", "toolchain", "lint"}


# ---------------------------------------------------------------------
# Shell
# ---------------------------------------------------------------------

def test_shell_argv():
    assert shell_argv(None, "echo hi") == "echo hi"
    assert shell_argv("bash", "echo hi")[-2:] == ["-c", "echo hi"]
    assert shell_argv("python", "print(1)") == [sys.executable, "-c", "print(1)"]
    with pytest.raises(ValueError):
        shell_argv("fish", "echo")


def test_shell_action_runs_with_env(tmp_path):
    cmd = "import os; print(os.environ['GREETING'])"
    result = ShellAction()(_request(tmp_path, run=cmd, shell="python"))
    assert result.exit_code == 0
    assert result.output.strip() == "hello"


def test_shell_action_reports_exit_code(tmp_path):
    result = ShellAction()(_request(tmp_path, run="import sys; sys.exit(3)", shell="python"))
    assert result.exit_code == 3
    assert not result.ok


def test_shell_action_output_tail(tmp_path):
    result = ShellAction(output_tail=5)(_request(tmp_path, run="print('x' * 100 + 'END')", shell="python"))
    assert result.output == "xEND\n"


def test_shell_action_missing_cwd(tmp_path):
    with pytest.raises(StepFailure) as exc:
        ShellAction()(_request(tmp_path / "nope", run="print(1)", shell="python"))
    assert exc.value.kind == "BadWorkingDirectory"


def test_shell_action_cancellation(tmp_path):
    cancel = threading.Event()
    timer = threading.Timer(0.3, cancel.set)
    timer.start()
    started = time.monotonic()
    try:
        result = ShellAction()(_request(tmp_path, run="import time; time.sleep(30)", shell="python", cancel=cancel))
    finally:
        timer.cancel()
    assert result.cancelled
    assert time.monotonic() - started < 10


def test_shell_action_timeout(tmp_path):
    with pytest.raises(StepFailure) as exc:
        ShellAction()(_request(tmp_path, run="import time; time.sleep(30)", shell="python", timeout=0.3))
    assert exc.value.kind == "StepTimeout"


# ---------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------

def test_install_command():
    assert install_command("linux", ["gcc-multilib", "g++-multilib"]) == (
        "sudo apt update && sudo apt install -y gcc-multilib g++-multilib"
    )
    assert install_command("macos", ["llvm"]) == "brew install llvm"
    with pytest.raises(ValueError):
        install_command("windows", ["x"])


def test_package_installer_delegates_to_shell(tmp_path):
    shell = FakeAction()
    PackageInstaller(shell)(_request(tmp_path, action="packages", with_={"packages": "crossbuild-essential-arm64"}))
    (req,) = shell.calls
    assert req.command == "sudo apt update && sudo apt install -y crossbuild-essential-arm64"
    assert req.shell == "bash"


def test_package_installer_with_nothing_to_install(tmp_path):
    shell = FakeAction()
    result = PackageInstaller(shell)(_request(tmp_path, action="packages", with_={"packages": ""}))
    assert result.ok
    assert shell.calls == []


def test_package_installer_unsupported_os(tmp_path):
    with pytest.raises(StepFailure, match="windows"):
        PackageInstaller(FakeAction())(_request(tmp_path, action="packages", with_={"packages": "x"}, os_family="windows"))


# ---------------------------------------------------------------------
# Toolchain
# ---------------------------------------------------------------------

def test_toolchain_commands():
    assert toolchain_command({"command": "setup", "toolchain": "stable"}) == (
        "rustup update stable --no-self-update && rustup default stable"
    )
    assert toolchain_command({"command": "add-target", "target": "aarch64-apple-darwin"}) == (
        "rustup target add aarch64-apple-darwin"
    )
    assert toolchain_command({"command": "test", "target": "i686-unknown-linux-gnu", "args": "--release"}) == (
        "cargo test --target i686-unknown-linux-gnu --release"
    )
    with pytest.raises(ValueError):
        toolchain_command({"command": "build"})


def test_toolchain_step_rejects_unknown_command():
    with pytest.raises(ValueError):
        toolchain_step("x", "bench")


def test_toolchain_invoker_falls_back_to_spec_target(tmp_path):
    shell = FakeAction()
    ToolchainInvoker(shell)(_request(tmp_path, action="toolchain", with_={"command": "build", "target": ""}))
    assert shell.calls[0].command == "cargo build --target i686-unknown-linux-gnu"


def test_toolchain_invoker_bad_step(tmp_path):
    with pytest.raises(StepFailure) as exc:
        ToolchainInvoker(FakeAction())(_request(tmp_path, action="toolchain", with_={"command": "bench", "target": "t"}))
    assert exc.value.kind == "BadToolchainStep"


# ---------------------------------------------------------------------
# Lint
# ---------------------------------------------------------------------

def test_lint_step_and_command():
    step = lint_step("Lint", args="--strict 'src dir'")
    assert step.action == "lint"
    assert step.with_ == {"script": "./scripts/lint.sh", "args": "--strict 'src dir'"}
    assert lint_command("./scripts/lint.sh", "--strict 'src dir'") == "./scripts/lint.sh --strict 'src dir'"
