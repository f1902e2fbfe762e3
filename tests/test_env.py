from __future__ import annotations

from matrixci.env import base_env, compose_env


def test_layering():
    base = {"A": "1"}
    job = {"B": "2"}
    step = {"A": "9", "C": "3"}
    assert compose_env(base, job, step) == {"A": "9", "B": "2", "C": "3"}


def test_inputs_are_not_mutated():
    base = {"A": "1"}
    job = {"B": "2"}
    env = compose_env(base, job, {"A": "9"})
    env["Z"] = "x"
    assert base == {"A": "1"}
    assert job == {"B": "2"}


def test_missing_layers_and_values_are_stringified():
    assert compose_env({"N": 1}, None, {}, {"FLAG": True}) == {"N": "1", "FLAG": "true"}


def test_base_env_adds_workflow_env():
    env = base_env({"RUST_BACKTRACE": 1}, environ={"PATH": "/usr/bin", "RUST_BACKTRACE": "0"})
    assert env == {"PATH": "/usr/bin", "RUST_BACKTRACE": "1"}
