"""Bill scrape queue commands."""

from __future__ import annotations

import typer

from cli.common import build_service, handle_errors
from schemas.responses import DeadLetterView, DispatchView, PaginatedResponse, QueueEntryView
from spotcheck.errors import QueueEmpty
from .shared import emit_json, emit_model


app = typer.Typer(
    help="Manage the LRS bill scrape queue",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


def _bill_id(value: str) -> str:
    from services.spotcheck import parse_bill_key

    try:
        return str(parse_bill_key(value))
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid bill id: {value!r}") from exc


@app.command("enqueue", help="Queue a bill for scraping, or reprioritize it")
def enqueue(
    bill_id: str = typer.Argument(..., metavar="BILL_ID", help="e.g. S100-2023"),
    priority: int = typer.Option(0, "--priority", "-p"),
) -> None:
    normalized = _bill_id(bill_id)
    service = build_service()
    with handle_errors():
        entry = service.enqueue(normalized, priority)
    emit_model(QueueEntryView.from_entry(entry))


@app.command("list", help="List queued bills by priority")
def list_queue(
    limit: int | None = typer.Option(None, "--limit", min=1),
    offset: int = typer.Option(0, "--offset", min=0),
    order: str = typer.Option("DESC", "--order", help="ASC|DESC"),
) -> None:
    service = build_service()
    try:
        page = service.list_queue(limit=limit, offset=offset, order=order)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    emit_model(PaginatedResponse.from_list(page, QueueEntryView.from_entry))


@app.command("head", help="Show the next bill to be scraped")
def queue_head() -> None:
    service = build_service()
    with handle_errors():
        entry = service.reference_store.dequeue_head()
    emit_model(QueueEntryView.from_entry(entry))


@app.command("remove", help="Remove a bill from the queue")
def remove(bill_id: str = typer.Argument(..., metavar="BILL_ID")) -> None:
    normalized = _bill_id(bill_id)
    service = build_service()
    with handle_errors():
        service.remove_from_queue(normalized)
    emit_json({"removed": normalized})


@app.command("dispatch", help="Scrape queued bills in the foreground")
def dispatch(
    count: int = typer.Option(1, "--count", "-n", min=1, help="Maximum bills to scrape"),
) -> None:
    service = build_service()
    outcomes = []
    with handle_errors():
        for _ in range(count):
            outcome = service.dispatch_once()
            if outcome is None:
                break
            outcomes.append(DispatchView.from_outcome(outcome))
        if not outcomes:
            raise QueueEmpty("The scrape queue is empty")
    emit_model(outcomes)


@app.command("dead-letters", help="List bills whose scrapes kept failing")
def dead_letters() -> None:
    service = build_service()
    with handle_errors():
        entries = service.dead_letters()
    emit_model([DeadLetterView.from_entry(entry) for entry in entries])


__all__ = ["app"]
