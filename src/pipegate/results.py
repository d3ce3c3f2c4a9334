# results.py
from __future__ import annotations

from typing import Iterable, List

from .errors import tool_hint
from .model import JobResult, PipelineResult, PipelineStatus, StepResult, StepStatus, TriggerEvent

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130  # same as an interrupted shell command


def aggregate(
    event: TriggerEvent,
    job_results: Iterable[JobResult],
    *,
    cancelled: bool = False,
    duration: float = 0.0,
) -> PipelineResult:
    """Freeze a completed set of job results into a PipelineResult."""
    return PipelineResult(
        event=event,
        jobs=tuple(job_results),
        cancelled=cancelled,
        duration=duration,
    )


def exit_code(result: PipelineResult) -> int:
    """CI gate semantics: pass, fail, or cancelled. No partial success."""
    if result.status is PipelineStatus.CANCELLED:
        return EXIT_CANCELLED
    return EXIT_OK if result.success else EXIT_FAILED


STATUS_LABELS = {
    StepStatus.SUCCEEDED: "SUCCEEDED",
    StepStatus.FAILED: "FAILED",
    StepStatus.TIMED_OUT: "TIMED-OUT",
    StepStatus.NOT_FOUND: "NOT-FOUND",
    StepStatus.CANCELLED: "CANCELLED",
    StepStatus.ERROR: "ERROR",
}


def _tail(text: str, limit: int) -> str:
    text = text.rstrip()
    if limit and len(text) > limit:
        return "…" + text[-limit:]
    return text


def _describe_failure(step: StepResult) -> str:
    status = step.status
    if status is StepStatus.FAILED:
        return f"tool reported failure (exit code {step.exit_code})"
    if status is StepStatus.TIMED_OUT:
        return f"timed out after {step.step.timeout}s"
    if status is StepStatus.NOT_FOUND:
        return "infrastructure: command could not be started"
    if status is StepStatus.CANCELLED:
        return "cancelled"
    return "infrastructure: orchestrator error"


def _job_details(job: JobResult, tail: int) -> List[str]:
    step = job.failed_step
    if step is None:
        return []

    lines = [f"  step '{step.step.name}': {_describe_failure(step)}"]
    if step.step.command:
        lines.append(f"  command: {step.step.display()}")
    if step.status is StepStatus.NOT_FOUND and step.step.command:
        lines.append(f"  hint: {tool_hint(step.step.command)}")
    if job.skipped:
        lines.append(f"  not run: {', '.join(job.skipped)}")

    for label, text in (("stdout", step.stdout), ("stderr", step.stderr)):
        text = _tail(text, tail)
        if text:
            lines.append(f"  --- {label} ---")
            lines.extend(f"  {line}" for line in text.splitlines())
    return lines


def render_summary(result: PipelineResult, tail: int = 4000) -> str:
    """
    Human-readable report: one line per job, then details for every job that
    did not succeed (failing step, reason, captured output tail).
    """
    width = max([len(j.name) for j in result.jobs] + [3])
    lines = ["=" * 40, f"RESULTS ({result.event})", "=" * 40]

    for job in result.jobs:
        lines.append(f"  {job.name:<{width}}  {STATUS_LABELS[job.status]:<10} {job.duration:6.1f}s")

    for job in result.failed_jobs:
        lines.append("")
        lines.append(f"{job.name}: {STATUS_LABELS[job.status]}")
        lines.extend(_job_details(job, tail))

    failed = len(result.failed_jobs)
    lines.append("")
    lines.append(
        f"PIPELINE {result.status.value.upper()}: "
        f"{len(result.jobs) - failed}/{len(result.jobs)} job(s) succeeded in {result.duration:.1f}s"
    )
    return "\n".join(lines)
