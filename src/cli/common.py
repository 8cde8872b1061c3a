"""Shared helpers for CLI commands."""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

import typer
import yaml
from pydantic import ValidationError

from core.config import get_settings
from core.logging import configure_logging
from spotcheck.errors import (
    MismatchNotFound,
    QueueEmpty,
    ReferenceDataNotFound,
    ReportNotFound,
    SpotcheckError,
)

if TYPE_CHECKING:
    from services.spotcheck import SpotcheckService

EXIT_FAILURE = 1
EXIT_REFERENCE_NOT_FOUND = 3
EXIT_NOT_FOUND = 4
EXIT_QUEUE_EMPTY = 5


def exit_code_for(exc: BaseException) -> int:
    if isinstance(exc, (ReportNotFound, MismatchNotFound)):
        return EXIT_NOT_FOUND
    if isinstance(exc, ReferenceDataNotFound):
        return EXIT_REFERENCE_NOT_FOUND
    if isinstance(exc, QueueEmpty):
        return EXIT_QUEUE_EMPTY
    return EXIT_FAILURE


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn spot-check errors into a message on stderr and an exit code."""
    try:
        yield
    except SpotcheckError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=exit_code_for(exc)) from exc


def build_service() -> "SpotcheckService":
    from services.spotcheck import SpotcheckService

    settings = get_settings()
    configure_logging(settings.log_level)
    return SpotcheckService.from_settings(settings)


def load_query_payload(
    query: str | None,
    query_file: Path | None,
    set_values: list[str] | None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {}

    if query:
        payload.update(_parse_json_string(query))

    if query_file:
        payload.update(_load_query_file(query_file))

    if set_values:
        payload.update(_parse_set_values(set_values))

    return payload


def build_model(model, payload: dict[str, Any]):
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc)) from exc


def parse_value(value: str) -> Any:
    if value == "":
        return ""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def _parse_json_string(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter("Query must be a JSON object.")
    return data


def _load_query_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise typer.BadParameter(f"Query file not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise typer.BadParameter(f"Invalid YAML: {exc}") from exc
    else:
        data = _parse_json_string(text)
    if not isinstance(data, dict):
        raise typer.BadParameter("Query file must contain a JSON/YAML object.")
    return data


def _parse_set_values(items: list[str]) -> dict[str, Any]:
    parsed: dict[str, Any] = {}
    for item in items:
        if "=" not in item:
            raise typer.BadParameter("--set requires key=value syntax.")
        key, raw_value = item.split("=", 1)
        key = key.strip()
        if not key:
            raise typer.BadParameter("--set requires a non-empty key.")
        parsed[key] = parse_value(raw_value.strip())
    return parsed


__all__ = [
    "EXIT_FAILURE",
    "EXIT_NOT_FOUND",
    "EXIT_QUEUE_EMPTY",
    "EXIT_REFERENCE_NOT_FOUND",
    "build_model",
    "build_service",
    "exit_code_for",
    "handle_errors",
    "load_query_payload",
    "parse_value",
]
