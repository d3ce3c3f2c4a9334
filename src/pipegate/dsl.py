# src/pipegate/dsl.py
from __future__ import annotations

import shlex
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .model import ALL_TRIGGERS, Job, Pipeline, Step, TriggerKind


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def step(
    name: str,
    command: str,
    *args: str,
    cwd: str | None = None,
    timeout: float | None = None,
) -> Step:
    """Create a step from a command and its arguments (no shell involved)."""
    return Step(name=name, command=command, args=tuple(args), cwd=cwd, timeout=timeout)


def sh(name: str, cmd: str, *, cwd: str | None = None, timeout: float | None = None) -> Step:
    """
    Create a step from a shell-like command line.

    The line is split with shell quoting rules but never run through a shell,
    so pipes, globs and `&&` are not interpreted.
    """
    parts = shlex.split(cmd)
    if not parts:
        raise ValueError(f"sh({name!r}) needs a command")
    return step(name, parts[0], *parts[1:], cwd=cwd, timeout=timeout)


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def _triggers(on: Union[None, str, Iterable[Union[str, TriggerKind]]]) -> tuple:
    if on is None:
        return ALL_TRIGGERS
    if isinstance(on, (str, TriggerKind)):
        on = [on]
    return tuple(k if isinstance(k, TriggerKind) else TriggerKind.parse(k) for k in on)


def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    env: Optional[Mapping[str, str]] = None,
    on: Union[None, str, Iterable[Union[str, TriggerKind]]] = None,
    continue_on_failure: bool = False,
    parallel: bool = True,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
    timeout: float | None = None,  # default timeout applied to steps missing one
) -> Job:
    if not steps:
        raise ValueError(f"job({name!r}) must have at least one step")

    steps_final: List[Step] = list(steps)
    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]
    if timeout is not None:
        steps_final = [s if s.timeout is not None else replace(s, timeout=timeout) for s in steps_final]

    return Job(
        name=name,
        steps=tuple(steps_final),
        # force values to str for env compatibility
        env={k: str(v) for k, v in (env or {}).items()},
        on=_triggers(on),
        continue_on_failure=continue_on_failure,
        parallel=parallel,
    )


# ---------------------------------------------------------------------
# Pipeline helper (single-file story)
# ---------------------------------------------------------------------

def pipeline(*jobs: Job, env: Optional[Mapping[str, str]] = None, name: str = "ci") -> Pipeline:
    """
    Pipeline definition helper.

    Users can write:
        from pipegate import pipeline, job, sh

        def workflow():
            return pipeline(
                job("test", sh("cargo test", "cargo test --workspace")),
                env={"RUSTFLAGS": "-D warnings"},
            )
    """
    env_final: Dict[str, str] = {k: str(v) for k, v in (env or {}).items()}
    return Pipeline(jobs=tuple(jobs), env=env_final, name=name)


def wf(*jobs: Job) -> List[Job]:
    """Bare job list, for workflow files that set `ENV` at module level."""
    return list(jobs)
