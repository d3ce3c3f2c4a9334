# scheduler.py
from __future__ import annotations

import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .env import job_environment
from .errors import CIError
from .model import Job, JobResult, Pipeline, PipelineResult, StepStatus, TriggerEvent
from .results import aggregate
from .runner import CancelToken, run_job, synthetic_result
from .ui.console import Console, get_console
from .workflow import validate_pipeline

logger = logging.getLogger(__name__)


def select_jobs(jobs: List[Job], event: TriggerEvent) -> List[Job]:
    """Jobs that apply to `event`, in declared order."""
    return [j for j in jobs if event.kind in j.on]


def _crashed(job: Job, exc: BaseException) -> JobResult:
    return JobResult(
        job=job,
        steps=(synthetic_result("<orchestrator>", StepStatus.ERROR, f"{type(exc).__name__}: {exc}"),),
        skipped=tuple(s.name for s in job.steps),
    )


def run_pipeline(
    pipeline: Pipeline,
    event: TriggerEvent,
    *,
    workspace: str | Path = ".",
    max_workers: int | None = None,
    token: Optional[CancelToken] = None,
    console: Optional[Console] = None,
    base_env: Optional[Mapping[str, str]] = None,
) -> PipelineResult:
    """
    Run every job that applies to `event` and wait for all of them.

    - Parallel-eligible jobs run together on a thread pool; `max_workers=None`
      starts them all at once.
    - Jobs with `parallel=False` then run one at a time.
    - A failing job never stops its siblings; one JobResult is recorded per
      selected job, whatever happened to it.

    Raises CIError before any job starts if the definition is malformed or the
    workspace does not exist.
    """
    validate_pipeline(pipeline)
    workspace_p = Path(workspace).resolve()
    if not workspace_p.is_dir():
        raise CIError(kind="workspace", message=f"Workspace not found: {workspace_p}")
    if max_workers is not None and max_workers < 1:
        raise CIError(kind="config", message=f"max_workers must be >= 1, got {max_workers}")

    token = token or CancelToken()
    console = console or get_console()
    base = os.environ.copy() if base_env is None else dict(base_env)

    jobs = select_jobs(list(pipeline.jobs), event)
    concurrent = [j for j in jobs if j.parallel]
    exclusive = [j for j in jobs if not j.parallel]
    logger.info(
        "event=%s: %d job(s) selected (%d concurrent, %d exclusive)",
        event, len(jobs), len(concurrent), len(exclusive),
    )

    def execute(job: Job) -> JobResult:
        # fresh copy per job; nothing is shared between concurrent jobs
        env = job_environment(pipeline.env, job, base)
        return run_job(job, env, workspace_p, token, console)

    results: Dict[str, JobResult] = {}
    started = time.perf_counter()

    if concurrent:
        workers = max_workers or len(concurrent)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pipegate-job") as pool:
            futures: Dict[Future, Job] = {pool.submit(execute, job): job for job in concurrent}

            for future in as_completed(futures):
                job = futures[future]
                try:
                    results[job.name] = future.result()
                except Exception as e:
                    logger.exception("job %r crashed", job.name)
                    results[job.name] = _crashed(job, e)
                console.print_job_result(results[job.name])

    for job in exclusive:
        try:
            results[job.name] = execute(job)
        except Exception as e:
            logger.exception("job %r crashed", job.name)
            results[job.name] = _crashed(job, e)
        console.print_job_result(results[job.name])

    return aggregate(
        event,
        [results[j.name] for j in jobs],
        cancelled=token.cancelled,
        duration=time.perf_counter() - started,
    )
