# git.py
# Small wrapper around the Git CLI.
# The orchestrator only needs git to label a run with the ref it was
# triggered for; the ref is passed through to the summary and never
# interpreted.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Raises subprocess.CalledProcessError on a non-zero exit and
    FileNotFoundError when git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def head_sha(cwd: Optional[str | Path] = None) -> str:
    """Full SHA of the current HEAD commit."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def get_current_ref(cwd: Optional[str | Path] = None) -> str:
    """
    Current branch name, or the HEAD SHA when detached.

    `git rev-parse --abbrev-ref HEAD` prints the literal "HEAD" on a
    detached checkout, which is what CI runners usually have.
    """
    ref = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    if ref == "HEAD":
        return head_sha(cwd=cwd)
    return ref


def current_ref_or_none(cwd: Optional[str | Path] = None) -> Optional[str]:
    try:
        return get_current_ref(cwd=cwd)
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
