"""Console output formatting utilities for pipegate."""

from __future__ import annotations

import sys
import threading
from typing import Iterable, Optional

from ..model import Job, JobResult, PipelineResult, StepResult, TriggerEvent
from ..results import render_summary


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, quiet: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            quiet: If True, suppress per-step progress lines
        """
        self.debug = debug
        self.quiet = quiet
        # jobs report progress from worker threads; the signal handler prints too
        self._lock = threading.RLock()

    def _emit(self, text: str, err: bool = False) -> None:
        with self._lock:
            print(text, file=sys.stderr if err else sys.stdout, flush=True)

    def print_run_started(
        self,
        pipeline: str,
        workflow: str,
        event: TriggerEvent,
        job_count: int,
    ) -> None:
        """Print run start information."""
        self._emit(
            "\nRUN STARTED\n"
            f"Pipeline: {pipeline}\n"
            f"Workflow: {workflow}\n"
            f"Event: {event}\n"
            f"Jobs: {job_count}\n"
        )

    def print_job_start(self, name: str) -> None:
        if not self.quiet:
            self._emit(f"[{name}] started")

    def print_step(self, job: str, step: str) -> None:
        if not self.quiet:
            self._emit(f"[{job}] ▶ {step}")

    def print_step_result(self, job: str, result: StepResult) -> None:
        if self.quiet:
            return
        line = f"[{job}] {result.step.name}: {result.status.value} ({result.duration:.1f}s)"
        if result.exit_code not in (None, 0):
            line += f" exit={result.exit_code}"
        self._emit(line)

    def print_job_result(self, result: JobResult) -> None:
        mark = "✓" if result.success else "✗"
        self._emit(f"{mark} {result.name}: {result.status.value}")

    def print_plan(self, selected: Iterable[Job], skipped: Iterable[Job], event: TriggerEvent) -> None:
        """Print which jobs an event selects."""
        self._emit(f"\nPLAN ({event})")
        for j in selected:
            mode = "" if j.parallel else ", exclusive"
            self._emit(f"  ✓ {j.name} ({len(j.steps)} step(s){mode})")
        for j in skipped:
            on = ", ".join(k.value for k in j.on)
            self._emit(f"  ⏭ {j.name} (runs on: {on})")

    def print_summary(self, result: PipelineResult, tail: int = 4000) -> None:
        """Print final results summary."""
        self._emit("\n" + render_summary(result, tail=tail))

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        if details:
            lines.extend(f"  {d}" for d in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit("\n".join(lines), err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            with self._lock:
                traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        self._emit(message)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
