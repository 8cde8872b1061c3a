"""Configuration inspection commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import typer
import yaml

from core.config import Settings, get_settings
from .shared import emit_json


_SECRET_FIELDS = {"openleg_api_key"}


app = typer.Typer(
    help="Inspect and export configuration",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
    no_args_is_help=True,
)


@app.command("show", help="Show the effective configuration")
def show_config(
    json_out: bool = typer.Option(True, "--json/--no-json", help="Output JSON"),
) -> None:
    payload = get_settings().model_dump(mode="json", exclude=_SECRET_FIELDS)
    if json_out:
        emit_json(payload)
        return
    for key, value in payload.items():
        typer.echo(f"{key}={value}")


@app.command("export", help="Export the configuration as JSON or YAML")
def export_config(
    output: Path | None = typer.Option(
        None,
        "--output",
        help="Target file (defaults to stdout)",
    ),
    fmt: str = typer.Option("json", "--format", help="json|yaml"),
) -> None:
    payload = get_settings().model_dump(mode="json", exclude=_SECRET_FIELDS)
    fmt = fmt.strip().lower()
    if fmt not in {"json", "yaml"}:
        raise typer.BadParameter(f"Unsupported format: {fmt}")
    if fmt == "yaml":
        text = yaml.safe_dump(payload, sort_keys=True, allow_unicode=True)
    else:
        text = json_dumps(payload)
    if output is None:
        typer.echo(text)
        return
    output.write_text(text, encoding="utf-8")
    typer.echo(f"Wrote: {output}")


@app.command("diff", help="Show settings that differ from their defaults")
def diff_config() -> None:
    defaults = _settings_defaults()
    current = get_settings().model_dump(mode="json", exclude=_SECRET_FIELDS)
    diff: dict[str, dict[str, Any]] = {}
    for key, value in current.items():
        default = defaults.get(key)
        if value != default:
            diff[key] = {"value": value, "default": default}
    emit_json(diff)


def _settings_defaults() -> dict[str, Any]:
    return Settings.model_construct().model_dump(mode="json", exclude=_SECRET_FIELDS)


def json_dumps(payload: object) -> str:
    import json

    return json.dumps(payload, ensure_ascii=False, indent=2)


__all__ = ["app"]
