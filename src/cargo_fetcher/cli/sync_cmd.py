"""Sync command: restore locked crates from the mirror into cargo's home."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn, Optional

import click

from ..backends import BackendError, create_backend
from ..config import FetcherConfig
from ..lockfile import LockfileError, read_lock_file
from ..sync import CacheLayout, CargoRootError, SyncEngine, determine_cargo_root
from ..util import parse_storage_url
from ._common import console, failure_table, logger, status_icon


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]error:[/] {message}")
    sys.exit(1)


def register_sync_commands(main: click.Group) -> None:
    """Register the sync command."""

    @main.command("sync")
    @click.option(
        "--cargo-root", "--cache", "cargo_root", default=None,
        type=click.Path(path_type=Path),
        help="Cargo home to populate. Defaults to CARGO_HOME or ~/.cargo.",
    )
    @click.option("--jobs", "-j", default=None, type=click.IntRange(min=1), help="Parallel downloads.")
    @click.option("--dry-run", is_flag=True, help="Only list the crates that would be fetched.")
    @click.pass_obj
    def sync(config: FetcherConfig, cargo_root: Optional[Path], jobs: Optional[int], dry_run: bool):
        """Download missing crates into the local cargo home and unpack them.

        Examples:

            cargo-fetcher -u gs://my-bucket/crates sync

            cargo-fetcher -u file:///mnt/mirror --include-index sync --cargo-root /opt/cargo
        """
        if not config.url:
            _fail("no storage URL given (use --url or set 'url' in the config file)")

        try:
            location = parse_storage_url(config.url)
            backend = create_backend(location, credentials=config.credentials)
        except (BackendError, RuntimeError) as exc:
            _fail(f"failed to initialize backend: {exc}")
        except (ValueError, OSError) as exc:
            _fail(f"invalid storage location {config.url}: {exc}")

        try:
            krates = read_lock_file(config.lock_file)
        except LockfileError as exc:
            _fail(f"failed to get crates from lock file: {exc}")

        try:
            root = determine_cargo_root(cargo_root or config.cargo_root)
        except CargoRootError as exc:
            _fail(str(exc))

        engine = SyncEngine(
            backend,
            CacheLayout(root=root),
            max_workers=jobs or config.max_workers,
        )

        if dry_run:
            try:
                missing = engine.plan(krates)
            except (CargoRootError, OSError) as exc:
                _fail(str(exc))
            console.print(
                f"\n  [cyan]{len(missing)}[/] of {len(krates)} crate(s) missing from {root}"
            )
            for krate in missing:
                console.print(f"    {krate.local_id}")
            console.print()
            return

        try:
            report = engine.run(krates, include_index=config.include_index)
        except (CargoRootError, OSError) as exc:
            logger.error("%s", exc)
            _fail(str(exc))

        console.print()
        if report.index is not None:
            console.print(f"  Index: {status_icon(report.index.status)}")
        console.print(
            f"  Crates: [bold]{len(report.synced)}[/] synced, "
            f"{report.requested - len(report.missing)} already cached, "
            f"{sum(1 for o in report.crates if not o.ok)} failed"
        )
        if report.failed:
            console.print()
            console.print(failure_table(report))
            console.print("  [yellow]Some crates could not be synced; see warnings above.[/]")
        console.print()
