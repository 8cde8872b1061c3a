"""Spot-check report commands."""

from __future__ import annotations

import typer

from cli.common import build_model, build_service, handle_errors
from schemas.requests import ReportSummaryQuery
from schemas.responses import PaginatedResponse, ReportSummaryView, ReportView, RunResultView
from .shared import emit_json, emit_model, parse_datetime, parse_ref_type


app = typer.Typer(
    help="Run, list and inspect spot-check reports",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.command("run", help="Run one report now and persist it")
def run_report(
    ref_type: str = typer.Argument(..., metavar="REFERENCE_TYPE"),
    start: str | None = typer.Option(None, "--start", help="Oldest reference datetime to use"),
    end: str | None = typer.Option(None, "--end", help="Newest reference datetime to use"),
    timeout: float | None = typer.Option(
        None, "--timeout", min=0.1, help="Cancel the run after this many seconds"
    ),
) -> None:
    resolved = parse_ref_type(ref_type)
    service = build_service()
    with handle_errors():
        result = service.run_report(
            resolved, parse_datetime(start), parse_datetime(end), timeout=timeout
        )
    emit_model(RunResultView.from_result(result))


@app.command("run-all", help="Run every configured reference type")
def run_all_reports(
    ref_types: list[str] | None = typer.Option(
        None, "--type", help="Restrict to these reference types; repeatable"
    ),
) -> None:
    service = build_service()
    selected = [parse_ref_type(value) for value in ref_types] if ref_types else None
    with handle_errors():
        results = service.run_reports(selected)
    emit_model([RunResultView.from_result(result) for result in results])
    if any(not result.succeeded for result in results):
        raise typer.Exit(code=1)


@app.command("list", help="List report summaries (default: last six months)")
def list_reports(
    ref_type: str | None = typer.Option(None, "--type", help="Reference type"),
    start: str | None = typer.Option(None, "--start", help="Earliest run datetime"),
    end: str | None = typer.Option(None, "--end", help="Latest run datetime"),
    order: str = typer.Option("DESC", "--order", help="ASC|DESC"),
    limit: int | None = typer.Option(None, "--limit", min=1),
    offset: int = typer.Option(0, "--offset", min=0),
) -> None:
    query = build_model(
        ReportSummaryQuery,
        {
            "reference_type": parse_ref_type(ref_type) if ref_type else None,
            "start": parse_datetime(start),
            "end": parse_datetime(end),
            "order": order.upper(),
            "limit": limit,
            "offset": offset,
        },
    )
    service = build_service()
    with handle_errors():
        page = service.list_reports(query)
    emit_model(PaginatedResponse.from_list(page, ReportSummaryView.from_record))


@app.command("show", help="Show a report by reference type and run datetime")
def show_report(
    ref_type: str = typer.Argument(..., metavar="REFERENCE_TYPE"),
    run_datetime: str = typer.Argument(..., metavar="RUN_DATETIME"),
    mismatches_only: bool = typer.Option(
        False, "--mismatches-only", help="Only observations with mismatches"
    ),
) -> None:
    resolved = parse_ref_type(ref_type)
    service = build_service()
    with handle_errors():
        report = service.get_report(resolved, parse_datetime(run_datetime))
    emit_model(ReportView.from_report(report, mismatches_only=mismatches_only))


@app.command("delete", help="Delete a report and all of its mismatches")
def delete_report(
    ref_type: str = typer.Argument(..., metavar="REFERENCE_TYPE"),
    run_datetime: str = typer.Argument(..., metavar="RUN_DATETIME"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    resolved = parse_ref_type(ref_type)
    run_dt = parse_datetime(run_datetime)
    if not yes:
        typer.confirm(f"Delete the {resolved.ref_name} report run at {run_dt}?", abort=True)
    service = build_service()
    with handle_errors():
        service.delete_report(resolved, run_dt)
    emit_json({"deleted": True, "reference_type": resolved.value, "run_datetime": run_dt.isoformat()})


__all__ = ["app"]
