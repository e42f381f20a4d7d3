"""
CLI repository commands — inspect a repository file.

Usage:
    python -m reposlice.main show-repo LOCATION [--json]
"""

from __future__ import annotations

import json

import click

from ..repository.loader import RepositoryLoader
from ..validation import ReposliceError


@click.command("show-repo")
@click.argument("location")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show_repo(location: str, as_json: bool) -> None:
    """Summarise the repository at LOCATION (path or URL)."""
    try:
        repository = RepositoryLoader().load(location)
    except ReposliceError as e:
        click.secho(f"✗ {e}", fg="red", err=True)
        raise SystemExit(1)

    summary = repository.summary()
    if as_json:
        summary["properties"] = dict(repository.properties)
        summary["reference_list"] = [
            {"location": r.location, "kind": r.kind.value, "enabled": r.enabled}
            for r in repository.get_references()
        ]
        click.echo(json.dumps(summary, indent=2))
        return

    click.echo(f"\n📦 {repository.name}\n")
    click.echo(f"  Location:    {repository.location}")
    click.echo(f"  Components:  {summary['components']}")
    click.echo(f"  Artifacts:   {summary['artifacts']}")
    for key, value in sorted(repository.properties.items()):
        click.echo(f"  Property:    {key}={value}")
    for ref in repository.get_references():
        click.echo(f"  Reference:   {ref}")
    click.echo()
