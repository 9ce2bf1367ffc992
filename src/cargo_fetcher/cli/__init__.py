"""
cargo-fetcher CLI.

Global options (storage URL, lockfile, logging) live on the main group
and are merged over the YAML config into a FetcherConfig that every
subcommand receives as ``ctx.obj``.

Entry point: cargo_fetcher.cli:main
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from .. import __version__
from ..config import LOG_LEVELS, load_config
from ._common import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="cargo-fetcher")
@click.option(
    "--url", "-u", default=None,
    help="Storage location: gs://bucket/prefix, s3://bucket/prefix or file:///path.",
)
@click.option(
    "--lock-file", "-l", default=None, type=click.Path(path_type=Path),
    help="Cargo.lock to read crates from.  [default: Cargo.lock]",
)
@click.option(
    "--include-index", "-i", is_flag=True, default=None,
    help="Also sync a snapshot of the crates.io index.",
)
@click.option(
    "--credentials", "-c", default=None, type=click.Path(path_type=Path),
    help="Service account file for GCS. Defaults to GOOGLE_APPLICATION_CREDENTIALS.",
)
@click.option(
    "--log-level", "-L", default=None, type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Only emit log messages at or above this level.  [default: info]",
)
@click.option("--json", "json_logs", is_flag=True, default=None, help="Output log messages as JSON.")
@click.option(
    "--config", "config_file", default=None, type=click.Path(path_type=Path),
    help="YAML config file.  [default: ~/.cargo-fetcher/config.yaml]",
)
@click.pass_context
def main(
    ctx: click.Context,
    url: Optional[str],
    lock_file: Optional[Path],
    include_index: Optional[bool],
    credentials: Optional[Path],
    log_level: Optional[str],
    json_logs: Optional[bool],
    config_file: Optional[Path],
):
    """cargo-fetcher -- serve locked crates from a private mirror."""
    config = load_config(config_file)
    overrides = {
        "url": url,
        "lock_file": lock_file,
        "include_index": include_index,
        "credentials": credentials,
        "log_level": log_level.lower() if log_level else None,
        "json_logs": json_logs,
    }
    config = config.model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )
    setup_logging(config.log_level, config.json_logs)
    ctx.obj = config


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .sync_cmd import register_sync_commands

register_sync_commands(main)
