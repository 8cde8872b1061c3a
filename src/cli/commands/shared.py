"""Shared helpers for CLI subcommands."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import typer
from pydantic import BaseModel

from schemas.internal.keys import BaseBillId, BillId, parse_key
from schemas.internal.spotcheck import Key, SpotCheckRefType


def emit_json(data: Any) -> None:
    typer.echo(json.dumps(data, ensure_ascii=False, indent=2))


def emit_model(model: BaseModel | list[BaseModel]) -> None:
    if isinstance(model, list):
        emit_json([item.model_dump(mode="json") for item in model])
        return
    emit_json(model.model_dump(mode="json"))


def parse_ref_type(value: str) -> SpotCheckRefType:
    try:
        return SpotCheckRefType.from_name(value)
    except ValueError as exc:
        choices = ", ".join(ref_type.ref_name for ref_type in SpotCheckRefType)
        raise typer.BadParameter(f"{exc}. Choose from: {choices}") from exc


def parse_datetime(value: str | None) -> datetime | None:
    """ISO-8601 datetime; naive values are taken as UTC."""
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid datetime: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_content_keys(value: str) -> list[Key]:
    """Parse ``kind:text`` or a bare bill id.

    A bare ``S100-2023`` matches both the unamended bill and the base bill.
    """
    if ":" in value:
        kind, text = value.split(":", 1)
        try:
            return [parse_key(kind.strip(), text)]
        except (KeyError, ValueError) as exc:
            raise typer.BadParameter(f"Invalid content key: {value!r}") from exc
    keys: list[Key] = []
    for parser in (BillId.parse, BaseBillId.parse):
        try:
            keys.append(parser(value))
        except ValueError:
            continue
    if not keys:
        raise typer.BadParameter(
            f"Invalid content key: {value!r} (use kind:text for calendar keys)"
        )
    return keys


__all__ = [
    "emit_json",
    "emit_model",
    "parse_content_keys",
    "parse_datetime",
    "parse_ref_type",
]
