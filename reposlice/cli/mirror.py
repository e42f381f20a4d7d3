"""
CLI mirror commands — run a mirror, or just print the closure.

Usage:
    python -m reposlice.main mirror --config mirror.yaml [--seed ID[/VERSION]]... [--dry-run] [--json]
                                    [--ledger FILE] [--metrics]
    python -m reposlice.main slice --config mirror.yaml [--seed ID[/VERSION]]... [--json]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Tuple

import click

from ..mirror.manager import MirrorManager
from ..observability.metrics import MetricsRegistry
from ..persistence.ledger import RunLedger
from ..validation import ReposliceError


def _fail(e: ReposliceError) -> None:
    click.secho(f"✗ {e}", fg="red", err=True)
    raise SystemExit(1)


@click.command("mirror")
@click.option("--config", "config_path", required=True, type=click.Path(path_type=Path),
              help="Mirror configuration YAML")
@click.option("--seed", "seeds", multiple=True, help="Seed component, id or id/version (repeatable)")
@click.option("--dry-run", is_flag=True, help="Don't save the destination")
@click.option("--json", "as_json", is_flag=True, help="Print the run result as JSON")
@click.option("--ledger", "ledger_path", type=click.Path(path_type=Path), default=None,
              help="Append run events to this NDJSON file")
@click.option("--metrics", "show_metrics", is_flag=True, help="Print Prometheus metrics after the run")
def mirror(
    config_path: Path,
    seeds: Tuple[str, ...],
    dry_run: bool,
    as_json: bool,
    ledger_path: Optional[Path],
    show_metrics: bool,
) -> None:
    """Slice the source repositories into the destination."""
    registry = MetricsRegistry()
    try:
        ledger = RunLedger(ledger_path) if ledger_path else None
        manager = MirrorManager.from_file(config_path, ledger=ledger, metrics=registry)
        result = manager.run(list(seeds), dry_run=dry_run)
    except ReposliceError as e:
        _fail(e)
        return

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        click.echo("")
        click.echo(f"  Run ID:      {result.run_id}")
        click.echo(f"  Closure:     {result.closure_size} component(s)")
        if result.sources_added:
            click.echo(f"  Sources:     {result.sources_added} added")
        click.echo(f"  Written:     {len(result.components_written)} component(s), "
                   f"{result.artifacts_written} artifact(s)")
        if result.components_provided or result.artifacts_provided:
            click.echo(f"  Provided:    {result.components_provided} component(s), "
                       f"{result.artifacts_provided} artifact(s) already referenced")
        for location in result.references:
            click.echo(f"  Reference:   {location}")
        for location in result.discarded_references:
            click.secho(f"  Dropped:     {location}", fg="yellow")
        for unresolved in result.unresolved:
            click.secho(f"  Unresolved:  {unresolved}", fg="yellow")
        for key in result.missing_artifacts:
            click.secho(f"  Missing:     {key}", fg="yellow")

        if dry_run:
            click.secho("\n(Dry run — destination not saved)", fg="cyan")
        else:
            click.secho(f"\n✓ Destination saved to {result.destination_file}", fg="green")

    if show_metrics:
        click.echo(registry.export_prometheus())


@click.command("slice")
@click.option("--config", "config_path", required=True, type=click.Path(path_type=Path),
              help="Mirror configuration YAML")
@click.option("--seed", "seeds", multiple=True, help="Seed component, id or id/version (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def slice_cmd(config_path: Path, seeds: Tuple[str, ...], as_json: bool) -> None:
    """Print the closure of the seeds without writing anything."""
    try:
        manager = MirrorManager.from_file(config_path)
        result = manager.slice(list(seeds))
    except ReposliceError as e:
        _fail(e)
        return

    components = result.sorted_components()
    if as_json:
        payload = {
            "roots": [str(c) for c in result.roots],
            "components": [{"id": c.id, "version": str(c.version)} for c in components],
            "sources": [str(c) for c in result.sources],
            "unresolved": [str(u) for u in result.unresolved],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    for component in components:
        click.echo(str(component))
    click.echo(f"\n{len(components)} component(s) from {len(result.roots)} root(s)")
    for unresolved in result.unresolved:
        click.secho(f"Unresolved: {unresolved}", fg="yellow")
