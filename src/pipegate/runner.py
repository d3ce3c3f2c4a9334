# runner.py
from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from pathlib import Path
from typing import List, Mapping, Optional, Set

from .model import Job, JobResult, Step, StepResult, StepStatus
from .ui.console import Console, get_console

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Cancellation
# ----------------------------------------------------------------------

class CancelToken:
    """
    Shared cancellation flag for one pipeline run.

    Step runners register their live processes here; `cancel()` sends every
    registered process SIGTERM and escalates to SIGKILL after `grace` seconds.
    Once cancelled, no new process may be registered.
    """

    def __init__(self, grace: float = 5.0):
        self.grace = grace
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._procs: Set[subprocess.Popen] = set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            procs = list(self._procs)

        logger.info("cancelling pipeline: terminating %d process(es)", len(procs))
        for proc in procs:
            _signal_process(proc)

        if procs:
            killer = threading.Timer(self.grace, self._kill_remaining)
            killer.daemon = True
            killer.start()

    def register(self, proc: subprocess.Popen) -> bool:
        with self._lock:
            if self._event.is_set():
                return False
            self._procs.add(proc)
            return True

    def unregister(self, proc: subprocess.Popen) -> None:
        with self._lock:
            self._procs.discard(proc)

    def _kill_remaining(self) -> None:
        with self._lock:
            procs = list(self._procs)
        for proc in procs:
            if proc.poll() is None:
                logger.warning("process %s ignored SIGTERM; killing", proc.pid)
                _signal_process(proc, kill=True)


def _signal_process(proc: subprocess.Popen, kill: bool = False) -> None:
    # Steps run in their own session, so signal the whole process group
    # (cargo and friends spawn children that hold our pipes open).
    try:
        if os.name == "posix":
            os.killpg(proc.pid, signal.SIGKILL if kill else signal.SIGTERM)
        elif kill:
            proc.kill()
        else:
            proc.terminate()
    except (ProcessLookupError, PermissionError):
        pass


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def synthetic_result(name: str, status: StepStatus, message: str) -> StepResult:
    """A result for a step that never ran (job crashed, cancelled before start)."""
    return StepResult(step=Step(name=name, command=""), status=status, stderr=message)


def run_step(
    step: Step,
    env: Mapping[str, str],
    workspace: str | Path,
    token: Optional[CancelToken] = None,
) -> StepResult:
    """
    Run one step as an external process and capture its outcome.

    Never raises for tool problems: a missing command or working directory is
    NOT_FOUND, a nonzero exit is FAILED, an expired `step.timeout` is TIMED_OUT
    and a cancelled token is CANCELLED.
    """
    if token is not None and token.cancelled:
        return StepResult(step=step, status=StepStatus.CANCELLED, stderr="pipeline cancelled")

    cwd = (Path(workspace) / (step.cwd or ".")).resolve()
    if not cwd.is_dir():
        return StepResult(
            step=step,
            status=StepStatus.NOT_FOUND,
            stderr=f"working directory not found: {cwd}",
        )

    started = time.perf_counter()
    try:
        proc = subprocess.Popen(
            step.argv,
            cwd=str(cwd),
            env=dict(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            start_new_session=(os.name == "posix"),
        )
    except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
        logger.debug("could not start %r: %s", step.command, e)
        return StepResult(
            step=step,
            status=StepStatus.NOT_FOUND,
            stderr=f"{step.command}: {e.strerror or e}",
            duration=time.perf_counter() - started,
        )

    logger.debug("started pid=%s: %s (cwd=%s)", proc.pid, step.display(), cwd)
    if token is not None and not token.register(proc):
        _signal_process(proc)

    timed_out = False
    try:
        try:
            stdout, stderr = proc.communicate(timeout=step.timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            logger.warning("step %r exceeded %ss; killing pid=%s", step.name, step.timeout, proc.pid)
            _signal_process(proc, kill=True)
            stdout, stderr = proc.communicate()
    finally:
        if token is not None:
            token.unregister(proc)

    duration = time.perf_counter() - started
    code = proc.returncode

    if timed_out:
        status = StepStatus.TIMED_OUT
    elif code == 0:
        status = StepStatus.SUCCEEDED
    elif token is not None and token.cancelled:
        status = StepStatus.CANCELLED
    else:
        status = StepStatus.FAILED

    return StepResult(
        step=step,
        status=status,
        exit_code=code,
        stdout=stdout or "",
        stderr=stderr or "",
        duration=duration,
    )


def run_job(
    job: Job,
    env: Mapping[str, str],
    workspace: str | Path,
    token: Optional[CancelToken] = None,
    console: Optional[Console] = None,
) -> JobResult:
    """
    Run a job's steps in declared order.

    Fail-fast: the first step that does not succeed ends the job and the rest
    are recorded as skipped, unless `job.continue_on_failure` is set.
    A cancellation always ends the job.
    """
    console = console or get_console()
    steps: List[Step] = list(job.steps)
    results: List[StepResult] = []

    console.print_job_start(job.name)
    for idx, step in enumerate(steps):
        if token is not None and token.cancelled:
            results.append(synthetic_result("<cancelled>", StepStatus.CANCELLED, "pipeline cancelled"))
            return JobResult(job=job, steps=tuple(results), skipped=_names(steps[idx:]))

        console.print_step(job.name, step.name)
        result = run_step(step, env, workspace, token)
        results.append(result)
        console.print_step_result(job.name, result)

        if result.status is StepStatus.CANCELLED:
            return JobResult(job=job, steps=tuple(results), skipped=_names(steps[idx + 1:]))
        if not result.ok and not job.continue_on_failure:
            return JobResult(job=job, steps=tuple(results), skipped=_names(steps[idx + 1:]))

    return JobResult(job=job, steps=tuple(results))


def _names(steps: List[Step]) -> tuple:
    return tuple(s.name for s in steps)
