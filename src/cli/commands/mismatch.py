"""Open mismatch queries and operator actions."""

from __future__ import annotations

from pathlib import Path

import typer

from cli.common import build_model, build_service, handle_errors, load_query_payload
from schemas.internal.spotcheck import SpotCheckMismatchIgnore
from schemas.requests import OpenMismatchQuery
from schemas.responses import MismatchView, OpenMismatchSummaryView, PaginatedResponse
from .shared import emit_model, parse_content_keys, parse_datetime, parse_ref_type


app = typer.Typer(
    help="Query open mismatches, ignore them and link issues",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.command("query", help="Query currently open mismatches")
def query_mismatches(
    ref_types: list[str] | None = typer.Option(None, "--type", help="Reference type; repeatable"),
    data_source: str | None = typer.Option(None, "--data-source", help="LBDC|NYSENATE|OPENLEG"),
    content_types: list[str] | None = typer.Option(
        None, "--content-type", help="BILL|CALENDAR; repeatable"
    ),
    observed_after: str | None = typer.Option(None, "--observed-after"),
    mismatch_types: list[str] | None = typer.Option(
        None, "--mismatch-type", help="Mismatch type; repeatable"
    ),
    ignore_statuses: list[str] | None = typer.Option(
        None, "--ignore", help="Ignore status to include; repeatable"
    ),
    statuses: list[str] | None = typer.Option(None, "--status", help="NEW|EXISTING; repeatable"),
    keys: list[str] | None = typer.Option(
        None, "--key", help="Content key such as S100A-2023 or kind:text; repeatable"
    ),
    order_by: str | None = typer.Option(None, "--order-by"),
    order: str | None = typer.Option(None, "--order", help="ASC|DESC"),
    limit: int | None = typer.Option(None, "--limit", min=1),
    offset: int | None = typer.Option(None, "--offset", min=0),
    query: str | None = typer.Option(None, "--query", help="OpenMismatchQuery as JSON"),
    query_file: Path | None = typer.Option(
        None, "--query-file", help="OpenMismatchQuery as a JSON/YAML file"
    ),
    set_values: list[str] | None = typer.Option(
        None, "--set", help="Override a single query field with key=value; repeatable"
    ),
) -> None:
    payload = load_query_payload(query, query_file, set_values)
    if ref_types:
        payload["reference_types"] = [parse_ref_type(value) for value in ref_types]
    if data_source:
        payload["data_source"] = data_source.upper()
    if content_types:
        payload["content_types"] = [value.upper() for value in content_types]
    if observed_after:
        payload["observed_after"] = parse_datetime(observed_after)
    if mismatch_types:
        payload["mismatch_types"] = [value.upper() for value in mismatch_types]
    if ignore_statuses:
        payload["ignore_statuses"] = [value.upper() for value in ignore_statuses]
    if statuses:
        payload["statuses"] = [value.upper() for value in statuses]
    if keys:
        payload["keys"] = [key for value in keys for key in parse_content_keys(value)]
    if order_by:
        payload["order_by"] = order_by.lower()
    if order:
        payload["order"] = order.upper()
    if limit is not None:
        payload["limit"] = limit
    if offset is not None:
        payload["offset"] = offset

    open_query = build_model(OpenMismatchQuery, payload)
    service = build_service()
    with handle_errors():
        page = service.query_mismatches(open_query)
    emit_model(PaginatedResponse.from_list(page, MismatchView.from_record))


@app.command("summary", help="Count open mismatches by reference type, type and status")
def mismatch_summary(
    ref_types: list[str] | None = typer.Option(None, "--type", help="Reference type; repeatable"),
    observed_after: str | None = typer.Option(None, "--observed-after"),
) -> None:
    selected = [parse_ref_type(value) for value in ref_types] if ref_types else None
    service = build_service()
    with handle_errors():
        rows = service.mismatch_summary(selected, parse_datetime(observed_after))
    emit_model([OpenMismatchSummaryView(**row) for row in rows])


@app.command("show", help="Show one stored mismatch record")
def show_mismatch(mismatch_id: int = typer.Argument(..., metavar="MISMATCH_ID")) -> None:
    service = build_service()
    with handle_errors():
        record = service.get_mismatch(mismatch_id)
    emit_model(MismatchView.from_record(record))


@app.command("ignore", help="Set the ignore status of a mismatch")
def ignore_mismatch(
    mismatch_id: int = typer.Argument(..., metavar="MISMATCH_ID"),
    status: str = typer.Argument(
        "IGNORE_ONCE", metavar="STATUS", help="NOT_IGNORED|IGNORE_ONCE|IGNORE_PERMANENTLY"
    ),
) -> None:
    try:
        ignore_status = SpotCheckMismatchIgnore(status.strip().upper())
    except ValueError as exc:
        raise typer.BadParameter(f"Unknown ignore status: {status}") from exc
    service = build_service()
    with handle_errors():
        record = service.set_mismatch_ignore(mismatch_id, ignore_status)
    emit_model(MismatchView.from_record(record))


@app.command("add-issue", help="Link an issue tracker id to a mismatch")
def add_issue(
    mismatch_id: int = typer.Argument(..., metavar="MISMATCH_ID"),
    issue_id: str = typer.Argument(..., metavar="ISSUE_ID"),
) -> None:
    service = build_service()
    with handle_errors():
        record = service.add_issue(mismatch_id, issue_id)
    emit_model(MismatchView.from_record(record))


@app.command("remove-issue", help="Unlink an issue tracker id from a mismatch")
def remove_issue(
    mismatch_id: int = typer.Argument(..., metavar="MISMATCH_ID"),
    issue_id: str = typer.Argument(..., metavar="ISSUE_ID"),
) -> None:
    service = build_service()
    with handle_errors():
        record = service.remove_issue(mismatch_id, issue_id)
    emit_model(MismatchView.from_record(record))


__all__ = ["app"]
