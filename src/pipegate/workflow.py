# workflow.py
from __future__ import annotations

import runpy
from pathlib import Path
from typing import Any, Dict, List, Mapping

from .errors import CIError, definition_error
from .model import Job, Pipeline, Step, TriggerKind


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------

def _check_env(env: Any, *, job: str | None = None) -> None:
    if not isinstance(env, Mapping):
        raise definition_error("env must be a mapping of str -> str", job=job, got=type(env).__name__)
    bad = sorted(str(k) for k, v in env.items() if not isinstance(k, str) or not isinstance(v, str))
    if bad:
        raise definition_error("env keys and values must be strings", job=job, keys=bad)


def validate_pipeline(pipeline: Pipeline) -> None:
    """Reject malformed definitions before anything runs."""
    if not isinstance(pipeline, Pipeline):
        raise definition_error(f"expected a Pipeline, got {type(pipeline).__name__}")

    for j in pipeline.jobs:
        if not isinstance(j, Job):
            raise definition_error(f"pipeline entries must be Job objects, got {type(j).__name__}")

    names = [j.name for j in pipeline.jobs]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise definition_error(f"Duplicate job names found: {dupes}")

    _check_env(pipeline.env)
    for j in pipeline.jobs:
        if not j.name:
            raise definition_error("job name must not be empty")
        if not j.steps:
            raise definition_error("job has no steps", job=j.name)
        if not j.on or not all(isinstance(k, TriggerKind) for k in j.on):
            raise definition_error("job.on must list trigger kinds", job=j.name)
        _check_env(j.env, job=j.name)
        for s in j.steps:
            if not isinstance(s, Step) or not s.command:
                raise definition_error("every step needs a command", job=j.name)
            if s.timeout is not None and s.timeout <= 0:
                raise CIError(
                    kind="definition",
                    message="step timeout must be > 0",
                    job=j.name,
                    step=s.name,
                    details={"timeout": s.timeout},
                )


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> Pipeline:
    """
    Load a pipeline from a python file path.

    The file must define either:
      - workflow() -> Pipeline | List[Job]
      - JOBS = [Job, ...]
    and may define ENV = {...} as the pipeline-wide default environment
    (ignored when workflow() already returns a Pipeline).
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise CIError(kind="definition", message=f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise CIError(kind="definition", message=f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"pipegate_workflow_{wf_path.stem}"
    try:
        globals_dict: Dict[str, Any] = runpy.run_path(str(wf_path), run_name=module_name)
    except Exception as e:
        raise CIError(
            kind="definition",
            message=f"Workflow file raised {type(e).__name__}: {e}",
            details={"path": str(wf_path)},
        ) from e

    try:
        pipeline = _build_pipeline(globals_dict, wf_path)
    except CIError:
        raise
    except Exception as e:
        # DSL helpers (job, sh, trigger parsing) raise plain ValueError
        raise CIError(
            kind="definition",
            message=f"Building the pipeline raised {type(e).__name__}: {e}",
            details={"path": str(wf_path)},
        ) from e

    validate_pipeline(pipeline)
    return pipeline


def _build_pipeline(globals_dict: Dict[str, Any], wf_path: Path) -> Pipeline:
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        loaded = globals_dict["workflow"]()
    elif "JOBS" in globals_dict:
        loaded = globals_dict["JOBS"]
    else:
        raise definition_error(
            "Workflow must define workflow() -> Pipeline | List[Job] or JOBS = [Job, ...].",
            path=str(wf_path),
        )

    if isinstance(loaded, Pipeline):
        return loaded
    if isinstance(loaded, (list, tuple)):
        env = globals_dict.get("ENV", {})
        _check_env(env)
        jobs: List[Job] = list(loaded)
        return Pipeline(jobs=tuple(jobs), env=env, name=wf_path.stem)
    raise definition_error(
        f"workflow() returned {type(loaded).__name__}; expected a Pipeline or a list of Job",
        path=str(wf_path),
    )
