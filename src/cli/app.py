"""Typer CLI entrypoint for spot-check runs."""

from __future__ import annotations

import os
import shlex
import sys
from importlib import import_module

import typer

from spotcheck import __version__

_SUBCOMMAND_SPECS: list[tuple[str, str, str]] = [
    ("config", "cli.commands.config", "Show and export settings"),
    ("report", "cli.commands.report", "Run, list and inspect reports"),
    ("mismatch", "cli.commands.mismatch", "Query and triage open mismatches"),
    ("queue", "cli.commands.queue", "Manage the bill scrape queue"),
    ("scheduler", "cli.commands.scheduler", "Periodic runs and the scrape dispatcher"),
]
_SUBCOMMAND_NAMES = {name for name, _, _ in _SUBCOMMAND_SPECS}
_SUBCOMMANDS_REGISTERED = False

app = typer.Typer(
    help=(
        "OpenLeg spot-check tool\n\n"
        "Compares legislative data against reference sources and tracks the mismatches\n"
    ),
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=True,
    add_completion=True,
)


@app.callback()
def root(
    ctx: typer.Context,
    version_flag: bool = typer.Option(
        False,
        "-v",
        "--version",
        help="Print the version",
    ),
) -> None:
    if version_flag:
        typer.echo(__version__)
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command(help="Run every configured reference type once and persist the reports")
def run() -> None:
    from cli.common import build_service, handle_errors
    from cli.commands.shared import emit_model
    from schemas.responses import RunResultView

    service = build_service()
    with handle_errors():
        results = service.run_reports()
    emit_model([RunResultView.from_result(result) for result in results])
    if any(not result.succeeded for result in results):
        raise typer.Exit(code=1)


def _parse_invoked_subcommand() -> str | None:
    completion_args = os.getenv("_TYPER_COMPLETE_ARGS")
    tokens: list[str]
    if completion_args:
        try:
            tokens = shlex.split(completion_args)
        except ValueError:
            tokens = completion_args.split()
        if tokens:
            tokens = tokens[1:]
    else:
        tokens = sys.argv[1:]

    for token in tokens:
        if token in _SUBCOMMAND_NAMES:
            return token
        if token.startswith("-"):
            continue
        break
    return None


def _register_subcommands(selected: str | None = None) -> None:
    global _SUBCOMMANDS_REGISTERED
    if _SUBCOMMANDS_REGISTERED:
        return

    for name, module_path, help_text in _SUBCOMMAND_SPECS:
        if selected == name or selected == "*":
            module = import_module(module_path)
            app.add_typer(module.app, name=name)
            continue
        app.add_typer(
            typer.Typer(help=help_text, add_completion=False, no_args_is_help=True),
            name=name,
        )

    _SUBCOMMANDS_REGISTERED = True


def main() -> None:
    _register_subcommands(_parse_invoked_subcommand())
    app()


__all__ = ["app", "main"]
