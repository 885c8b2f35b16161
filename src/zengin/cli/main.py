"""Primary Typer application wiring the zengin CLI."""

from __future__ import annotations

from typing import List, Optional
from uuid import uuid4

import typer
from rich.table import Table

from zengin.utils.logging import configure_logging

from . import catalog
from .common import CLIState, cli_errors, console, merge_overrides, parse_override, resolve_settings

app = typer.Typer(
    add_completion=False,
    help="Harvest the zengin institution and branch catalog into JSON.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    environment: Optional[str] = typer.Option(
        None,
        "--environment",
        "-e",
        help="Active configuration environment (development, testing, production).",
        show_default=False,
    ),
    override: List[str] = typer.Option(  # noqa: B008 - Typer callback signature
        [],
        "--override",
        "-o",
        metavar="KEY=VALUE",
        help="Configuration override in dotted.key=value notation (repeatable).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Emit debug logging and print the resolved CLI context.",
    ),
) -> None:
    """Configure shared CLI state prior to executing subcommands."""

    overrides = merge_overrides(parse_override(item) for item in override)
    with cli_errors():
        settings = resolve_settings(environment, overrides)
    run_id = f"cli-{uuid4().hex[:8]}"
    configure_logging(settings, level="DEBUG" if verbose else "INFO", run_id=run_id)
    ctx.obj = CLIState(
        settings=settings,
        overrides=overrides,
        environment=settings.environment,
        run_id=run_id,
        verbose=verbose,
    )

    if verbose:
        table = Table(title="CLI Context", show_header=False, box=None)
        table.add_row("Environment", settings.environment)
        table.add_row("Run ID", run_id)
        table.add_row("Policy version", settings.policy_version)
        table.add_row("Catalog", str(settings.catalog_path))
        console.print(table)


app.command("harvest")(catalog._harvest_command)
app.command("show")(catalog._show_command)
app.command("keys")(catalog._keys_command)
