"""Steps that run the current interpreter, so tests need no external tools."""

import sys

from pipegate.dsl import step

MISSING_COMMAND = "pipegate-no-such-tool-7f3a"


def py(name, code, *args, **kwargs):
    """A step running `python -c code [args...]` with the test interpreter."""
    return step(name, sys.executable, "-c", code, *args, **kwargs)


def ok(name="ok"):
    return py(name, "pass")


def fail(name="fail", code=1):
    return py(name, f"import sys; sys.exit({code})")


def missing(name="missing"):
    return step(name, MISSING_COMMAND, "--version")
