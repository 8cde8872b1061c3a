"""Scheduler control commands."""

from __future__ import annotations

import time

import typer

from cli.common import build_service, handle_errors
from schemas.responses import RunResultView, SchedulerStatus
from services.scheduler import SpotcheckScheduler
from .shared import emit_json, emit_model, parse_ref_type


app = typer.Typer(
    help="Inspect and control periodic spot-check runs",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.command("status", help="Show the scheduler state")
def status() -> None:
    service = build_service()
    emit_model(SchedulerStatus.model_validate(service.scheduler_status()))


@app.command("trigger", help="Run one reference type now unless it is already running")
def trigger(ref_type: str = typer.Argument(..., metavar="REFERENCE_TYPE")) -> None:
    resolved = parse_ref_type(ref_type)
    service = build_service()
    with handle_errors():
        started = service.trigger(resolved)
    result = service.scheduler.last_result(resolved)
    if not started or result is None:
        emit_json({"started": False, "reference_type": resolved.value})
        return
    emit_model(RunResultView.from_result(result))


@app.command("start", help="Run the scheduler and scrape dispatcher until interrupted")
def start(
    no_dispatch: bool = typer.Option(
        False, "--no-dispatch", help="Do not scrape queued bills"
    ),
) -> None:
    service = build_service()
    if no_dispatch:
        service.scheduler = SpotcheckScheduler(service.settings, service.runs)
    service.scheduler.start()
    typer.echo("Scheduler running; press Ctrl+C to stop")
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        typer.echo("Stopping")
    finally:
        service.scheduler.stop()


__all__ = ["app"]
