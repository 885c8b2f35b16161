"""Harvest and inspection commands for the zengin CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from zengin.harvest import HarvestReport, build_aggregator
from zengin.storage import JsonCatalogStore

from .common import CLIError, cli_errors, console, get_state, resolve_path


def _render_report(report: HarvestReport) -> None:
    table = Table(title="Harvest summary", box=None)
    table.add_column("Phase")
    table.add_column("Shards", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Rejected rows", justify="right")

    institution_batch = report.institution_batch
    table.add_row(
        "institutions",
        str(institution_batch.shards_total),
        str(len(institution_batch.failures)),
        str(len(institution_batch.succeeded)),
        str(institution_batch.rejected_rows),
    )
    branch_batches = list(report.branch_batches.values())
    if branch_batches:
        table.add_row(
            "branches",
            str(sum(batch.shards_total for batch in branch_batches)),
            str(sum(len(batch.failures) for batch in branch_batches)),
            str(sum(len(batch.succeeded) for batch in branch_batches)),
            str(sum(batch.rejected_rows for batch in branch_batches)),
        )
    console.print(table)

    if report.failures:
        failed = Table(title="Failed shards", box=None)
        failed.add_column("Scope")
        failed.add_column("Key")
        failed.add_column("Error")
        for failure in report.failures:
            failed.add_row(failure.scope or "institutions", failure.key, escape(failure.error_type))
        console.print(failed)


def _harvest_command(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-O",
        help="Destination JSON file (defaults to the configured catalog path).",
        show_default=False,
    ),
    keys: Optional[str] = typer.Option(
        None,
        "--keys",
        "-k",
        help="Restrict the institution lookup to these search keys.",
        show_default=False,
    ),
    branch_keys: Optional[str] = typer.Option(
        None,
        "--branch-keys",
        help="Restrict each branch lookup to these search keys.",
        show_default=False,
    ),
    skip_branches: bool = typer.Option(
        False,
        "--skip-branches",
        help="Only harvest the institution list.",
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Exit with status 1 when any shard was lost.",
    ),
) -> None:
    """Harvest institutions and branches and save them as JSON."""

    state = get_state(ctx)
    settings = state.settings
    with cli_errors():
        try:
            aggregator = build_aggregator(settings.policies)
            key_space = aggregator.key_space.subset(keys) if keys else None
            branch_space = aggregator.branch_key_space.subset(branch_keys) if branch_keys else None
        except ValueError as exc:
            raise CLIError(str(exc)) from exc

        destination = resolve_path(output or settings.catalog_path, must_exist=False)
        include_branches = settings.policies.harvest.include_branches and not skip_branches
        with console.status("Harvesting catalog..."):
            report = aggregator.compose_full_catalog(
                key_space,
                branch_space,
                include_branches=include_branches,
            )
        JsonCatalogStore(destination).save(report.catalog)

    _render_report(report)
    console.print(f"Saved {len(report.catalog)} institutions to {destination}", highlight=False)
    colour = "green" if report.complete else "yellow"
    console.print(f"[{colour}]Harvest {report.summary()}[/{colour}]", highlight=False)
    if strict and not report.complete:
        raise typer.Exit(code=1)


def _show_command(
    ctx: typer.Context,
    path: Optional[Path] = typer.Argument(
        None,
        help="Catalog JSON file (defaults to the configured catalog path).",
        show_default=False,
    ),
    code: Optional[str] = typer.Option(
        None,
        "--code",
        "-c",
        help="Show the branches of one institution.",
        show_default=False,
    ),
) -> None:
    """Render a saved catalog."""

    state = get_state(ctx)
    with cli_errors():
        source = resolve_path(path or state.settings.catalog_path)
        catalog = JsonCatalogStore(source).load()
        if code is not None and code not in catalog:
            raise CLIError(f"Institution {code} is not in {source}")

    if code is None:
        table = Table(title=f"{len(catalog)} institutions", box=None)
        table.add_column("Code")
        table.add_column("Name")
        table.add_column("Phonetic")
        table.add_column("Branches", justify="right")
        for entry_code in sorted(catalog):
            entry = catalog[entry_code]
            table.add_row(entry.code, escape(entry.name), escape(entry.phonetic), str(len(entry.branches)))
    else:
        institution = catalog[code]
        table = Table(title=f"{escape(institution.name)} ({institution.code})", box=None)
        table.add_column("Code")
        table.add_column("Name")
        table.add_column("Phonetic")
        for branch in institution.branches:
            table.add_row(branch.code, escape(branch.name), escape(branch.phonetic))
    console.print(table)


def _keys_command(ctx: typer.Context) -> None:
    """Print the configured search alphabets grouped by row."""

    harvest = get_state(ctx).settings.policies.harvest
    table = Table(title="Search keys", box=None, show_header=False)
    table.add_row("institutions", " ".join(harvest.key_rows))
    table.add_row("branches", harvest.branch_alphabet)
    console.print(table)
    console.print(f"{len(harvest.alphabet)} institution shards", highlight=False)
