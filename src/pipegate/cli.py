# cli.py
from __future__ import annotations

import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import click

from pipegate.errors import CIError
from pipegate.git_facts.git import current_ref_or_none
from pipegate.logging_config import configure_logging
from pipegate.model import TriggerEvent, TriggerKind
from pipegate.results import exit_code
from pipegate.runner import CancelToken
from pipegate.scheduler import run_pipeline, select_jobs
from pipegate.ui.console import Console, get_console, set_console
from pipegate.workflow import load_workflow

EXIT_USAGE = 2

DEFAULT_WORKFLOW = "pipegate_workflow.py"


def find_workflow_files(directory: Path = Path(".")) -> list[Path]:
    """
    Find all workflow files in a directory.

    Returns:
        List of Path objects for workflow files
    """
    workflow_files = []

    default_workflow = directory / DEFAULT_WORKFLOW
    if default_workflow.exists():
        workflow_files.append(default_workflow)

    for path in directory.glob("*_workflow.py"):
        if path != default_workflow:
            workflow_files.append(path)

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix != ".py":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  pipegate run --workflow my_workflow.py",
            )
            sys.exit(EXIT_USAGE)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=["Looked for:", f"  {DEFAULT_WORKFLOW}", "  *_workflow.py"],
            suggestion=f"Create {DEFAULT_WORKFLOW} or specify a workflow explicitly:\n  pipegate run --workflow my_workflow.py",
        )
        sys.exit(EXIT_USAGE)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion=f"Specify a workflow explicitly:\n  pipegate run --workflow {DEFAULT_WORKFLOW}",
        )
        sys.exit(EXIT_USAGE)

    return workflow_files[0]


def _parse_event(ctx, param, value: str) -> TriggerKind:
    try:
        return TriggerKind.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


@contextmanager
def cancel_on_signals(token: CancelToken) -> Iterator[None]:
    """Turn SIGINT/SIGTERM into a pipeline cancellation for the duration."""
    console = get_console()
    received: list[int] = []
    wake = threading.Event()

    # The handler interrupts the main thread, which may be holding the token
    # or console lock, so it only records the signal; the watcher does the rest.
    def handler(signum, frame):
        received.append(signum)
        wake.set()

    def watch():
        wake.wait()
        if received:
            token.cancel()
            console.print_info(f"\nReceived signal {received[0]}, cancelling running jobs...")

    watcher = threading.Thread(target=watch, name="pipegate-signals", daemon=True)
    watcher.start()
    previous = {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)
        wake.set()
        watcher.join()


def _load_or_exit(workflow: str | None, debug: bool):
    console = get_console()
    workflow_path = discover_workflow(workflow)
    try:
        return workflow_path, load_workflow(workflow_path)
    except CIError as e:
        console.print_error(
            "Invalid pipeline definition",
            f"Could not load workflow from {workflow_path}",
            details=str(e).splitlines(),
        )
        if debug:
            console.print_exception(e)
        sys.exit(EXIT_USAGE)


event_option = click.option(
    "--event",
    "event_kind",
    default="push",
    show_default=True,
    envvar=["PIPEGATE_EVENT", "GITHUB_EVENT_NAME"],
    callback=_parse_event,
    help="Trigger event: push or pull_request",
)
workflow_option = click.option(
    "--workflow",
    default=None,
    envvar="PIPEGATE_WORKFLOW",
    help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and debug logging)",
)
@click.pass_context
def cli(ctx, debug):
    """pipegate: run independent CI jobs in parallel and gate on the result."""
    configure_logging("DEBUG" if debug else None)
    set_console(Console(debug=debug))
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@workflow_option
@event_option
@click.option("--ref", default=None, envvar="PIPEGATE_REF", help="Branch or commit being verified (defaults to the current git ref)")
@click.option("--workers", default=None, type=click.IntRange(min=1), envvar="PIPEGATE_WORKERS", help="Max concurrent jobs (default: all at once)")
@click.option(
    "--workspace",
    default=".",
    show_default=True,
    envvar="PIPEGATE_WORKSPACE",
    type=click.Path(exists=True, file_okay=False),
    help="Project root every step runs in",
)
@click.option("--quiet", is_flag=True, default=False, help="Only print the final summary")
@click.option("--output-tail", default=4000, show_default=True, type=click.IntRange(min=0), help="Characters of failing step output to show (0 = all)")
@click.pass_context
def run(ctx, workflow, event_kind, ref, workers, workspace, quiet, output_tail):
    """Run the pipeline for a trigger event."""
    debug = ctx.obj.get("debug", False)
    console = Console(debug=debug, quiet=quiet)
    set_console(console)

    workflow_path, pipeline = _load_or_exit(workflow, debug)
    event = TriggerEvent(kind=event_kind, ref=ref or current_ref_or_none(workspace))
    selected = select_jobs(list(pipeline.jobs), event)

    console.print_run_started(
        pipeline=pipeline.name,
        workflow=workflow_path.name,
        event=event,
        job_count=len(selected),
    )

    token = CancelToken()
    try:
        with cancel_on_signals(token):
            result = run_pipeline(
                pipeline,
                event,
                workspace=workspace,
                max_workers=workers,
                token=token,
                console=console,
            )
    except CIError as e:
        console.print_error("Pipeline could not start", e.message, details=str(e).splitlines()[1:])
        if debug:
            console.print_exception(e)
        sys.exit(EXIT_USAGE)

    console.print_summary(result, tail=output_tail)
    sys.exit(exit_code(result))


@cli.command()
@workflow_option
@event_option
def plan(workflow, event_kind):
    """Show which jobs an event would run, without running them."""
    console = get_console()
    _workflow_path, pipeline = _load_or_exit(workflow, console.debug)
    event = TriggerEvent(kind=event_kind)

    selected = select_jobs(list(pipeline.jobs), event)
    chosen = {j.name for j in selected}
    skipped = [j for j in pipeline.jobs if j.name not in chosen]
    console.print_plan(selected, skipped, event)
    if pipeline.env:
        console.print_info("Default environment:")
        for k, v in sorted(pipeline.env.items()):
            console.print_info(f"  {k}={v}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
