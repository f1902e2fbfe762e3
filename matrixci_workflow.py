# matrixci_workflow.py
# Cross-target build-and-test pipeline, Python flavour of examples/cross_targets.yml
from __future__ import annotations

from matrixci.dsl import wf, job, sh, matrix, packages, toolchain, lint_job


TARGETS = (
    matrix("thing", ["i686-linux", "aarch64-linux", "arm64-macos"],
           defaults={"apt_packages": "", "custom_env": {}, "build_only": False})
    .include(
        "i686-linux",
        target="i686-unknown-linux-gnu",
        rust="stable",
        os="ubuntu-latest",
        apt_packages="gcc-multilib g++-multilib",
    )
    .include(
        "aarch64-linux",
        target="aarch64-unknown-linux-gnu",
        rust="stable",
        os="ubuntu-latest",
        apt_packages="crossbuild-essential-arm64",
        custom_env={
            "CC": "aarch64-linux-gnu-gcc",
            "CXX": "aarch64-linux-gnu-g++",
            "CARGO_TARGET_AARCH64_UNKNOWN_LINUX_GNU_LINKER": "aarch64-linux-gnu-g++",
        },
        build_only=True,
    )
    .include(
        "arm64-macos",
        target="aarch64-apple-darwin",
        rust="stable",
        os="macos-latest",
    )
)


def workflow():
    return wf(
        # Static check, outside the matrix
        lint_job(),

        job(
            "Test",
            toolchain("Install Rust (rustup)", "setup", toolchain="${{ matrix.rust }}"),
            packages(
                "Install target-specific APT dependencies",
                "${{ matrix.apt_packages }}",
                if_="matrix.apt_packages != ''",
            ),
            sh("Add target", "rustup target add ${{ matrix.target }}"),
            toolchain("Build tests", "build", target="${{ matrix.target }}", env="${{ matrix.custom_env }}"),
            toolchain(
                "Run tests",
                "test",
                target="${{ matrix.target }}",
                env="${{ matrix.custom_env }}",
                if_="!matrix.build_only",
            ),
            key="test",
            runs_on="${{ matrix.os }}",
            matrix=TARGETS,
            checkout={"submodules": "recursive"},
        ),
        name="CI",
        env={"RUSTFLAGS": "-Dwarnings", "RUST_BACKTRACE": "1"},
    )
