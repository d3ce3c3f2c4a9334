"""Effective environment resolution for job steps."""

from __future__ import annotations

import os
from typing import Dict, Mapping, Optional

from .model import Job


def resolve_environment(
    defaults: Mapping[str, str],
    overrides: Mapping[str, str] | None = None,
) -> Dict[str, str]:
    """
    Overlay `overrides` onto `defaults` and return a new mapping.

    Overrides add or replace keys; keys present only in `defaults` pass through
    unchanged. Neither input is modified, so every caller gets its own copy.
    """
    env = dict(defaults)
    if overrides:
        env.update(overrides)
    return env


def job_environment(
    pipeline_env: Mapping[str, str],
    job: Job,
    base: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Effective environment for one job execution.

    Layers, later wins: `base` (the host environment unless given) ->
    pipeline defaults -> job overrides.
    """
    if base is None:
        base = os.environ.copy()
    return resolve_environment(resolve_environment(base, pipeline_env), job.env)
