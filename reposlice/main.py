"""
reposlice — CLI Entry Point

Usage:
    python -m reposlice.main mirror --config mirror.yaml [--dry-run]
    python -m reposlice.main slice --config mirror.yaml --seed org.example.app
    python -m reposlice.main show-repo ./repos/release
"""

from __future__ import annotations

# Load .env FIRST, before any other imports that might read env vars
from pathlib import Path
from dotenv import load_dotenv

_env_file = Path.cwd() / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

import click

from . import __version__
from .cli.mirror import mirror, slice_cmd
from .cli.repo import show_repo
from .logging_config import setup_logging

# Initialize logging
setup_logging()


@click.group()
@click.version_option(__version__, prog_name="reposlice")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """reposlice — Slice component repositories into minimal mirrors."""
    ctx.ensure_object(dict)


cli.add_command(mirror)
cli.add_command(slice_cmd)
cli.add_command(show_repo)


if __name__ == "__main__":
    cli()
