"""
Sync Engine -- pulls missing crates from a storage backend into cargo's home.

    cargo-fetcher sync  ->  diff lockfile vs local cache -> fetch -> unpack

Registry crates land in ``registry/cache`` (raw ``.crate``) and
``registry/src`` (unpacked). Git crates land in ``git/db``. The
crates.io index snapshot, when requested, lands in ``registry/index``.

One broken crate never stops the rest: every failure is logged and
reported in the SyncReport, and only precondition violations raise.
"""

from __future__ import annotations

import bisect
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Optional

from ..backends.base import BackendError, StorageBackend
from ..models import GitSource, Krate
from ..util import canonicalize_url, ident
from .models import CacheLayout, KrateOutcome, OutcomeStatus, SyncReport
from .unpack import Compression, UnpackError, unpack_tar

logger = logging.getLogger("cargo_fetcher.sync.engine")

INDEX_KRATE_NAME = "crates.io-index"
INDEX_KRATE_VERSION = "1.0.0"

ARCHIVE_SUFFIXES = (".crate", ".tgz", ".tar")


class SyncError(Exception):
    """Raised when a sync cannot start at all."""


class CargoRootError(SyncError):
    """Raised when the cargo home is missing or doesn't look like one."""


def determine_cargo_root(explicit: Optional[Path] = None) -> Path:
    """Resolve cargo's home directory.

    Args:
        explicit: Path given on the command line or in config.

    Returns:
        The explicit path, else ``$CARGO_HOME``, else ``~/.cargo``.

    Raises:
        CargoRootError: If no candidate can be determined.
    """
    if explicit:
        return Path(explicit).expanduser()
    env = os.environ.get("CARGO_HOME")
    if env:
        return Path(env).expanduser()
    try:
        home = Path("~").expanduser()
    except RuntimeError as exc:
        raise CargoRootError("unable to determine cargo root") from exc
    return home / ".cargo"


def _strip_archive_suffix(name: str) -> str:
    for suffix in ARCHIVE_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


class SyncEngine:
    """Populates a cargo home from a storage backend.

    The backend and the sorted list of cached ids are the only state
    shared between worker threads, and both are read-only.
    """

    def __init__(
        self,
        backend: StorageBackend,
        layout: CacheLayout,
        max_workers: Optional[int] = None,
    ):
        """Initialize the sync engine.

        Args:
            backend: Where archives are fetched from.
            layout: Cargo home layout to populate.
            max_workers: Size of the crate worker pool. Defaults to the
                number of CPUs.
        """
        self.backend = backend
        self.layout = layout
        self.max_workers = max_workers or os.cpu_count() or 4

    # ------------------------------------------------------------------
    # Preconditions and diff
    # ------------------------------------------------------------------

    def check_root(self) -> None:
        """Make sure the root really is a cargo home.

        Raises:
            CargoRootError: If the cargo binary is missing.
        """
        if not self.layout.sanity_binary_path.exists():
            raise CargoRootError(
                f"cargo root {self.layout.root} does not seem to contain the cargo binary"
            )

    def prepare(self) -> None:
        """Create the cache directories if they don't exist yet."""
        for d in self.layout.directories():
            d.mkdir(parents=True, exist_ok=True)

    def cached_ids(self) -> list[str]:
        """Sorted names of everything already in the crate cache and git db.

        Raises:
            OSError: If either directory cannot be listed.
        """
        names = [p.name for p in self.layout.cache_path.iterdir()]
        names.extend(p.name for p in self.layout.git_db_path.iterdir())
        names.sort()
        return names

    def missing(
        self, krates: Iterable[Krate], cached: Optional[list[str]] = None
    ) -> list[Krate]:
        """Krates whose local id is not in the cache, in input order.

        Args:
            krates: Locked krates.
            cached: Sorted cached ids. Read from disk when omitted.
        """
        if cached is None:
            cached = self.cached_ids()

        to_sync = []
        for krate in krates:
            local_id = krate.local_id
            i = bisect.bisect_left(cached, local_id)
            if i == len(cached) or cached[i] != local_id:
                to_sync.append(krate)
        return to_sync

    def plan(self, krates: Iterable[Krate]) -> list[Krate]:
        """Dry run: check preconditions and report what a sync would fetch."""
        self.check_root()
        self.prepare()
        return self.missing(krates)

    # ------------------------------------------------------------------
    # Registry index
    # ------------------------------------------------------------------

    def index_krate(self) -> Krate:
        """The registry index, dressed up as a git krate for the backend."""
        url = canonicalize_url(self.layout.index_url)
        return Krate(
            name=INDEX_KRATE_NAME,
            version=INDEX_KRATE_VERSION,
            source=GitSource(url=url, ident=ident(url)),
        )

    def sync_index(self) -> KrateOutcome:
        """Download and unpack the registry index snapshot.

        An existing checkout is left alone; cargo's own incremental
        fetch brings it up to date faster than a full snapshot.
        """
        krate = self.index_krate()
        index_path = self.layout.index_path

        if (index_path / ".git").exists():
            logger.info("Skipping crates.io index download, index repository already present")
            return KrateOutcome(krate=krate, status=OutcomeStatus.SKIPPED)

        logger.info("Syncing crates.io index")
        try:
            data = self.backend.fetch(krate)
        except BackendError as exc:
            logger.error("Failed to download crates.io index: %s", exc)
            return self._failed(krate, "fetch", exc)

        try:
            unpack_tar(data, index_path, Compression.ZSTD)
        except UnpackError as exc:
            logger.error("Failed to unpack crates.io index: %s", exc)
            return self._failed(krate, "unpack", exc)

        logger.info("Successfully synced crates.io index")
        return KrateOutcome(krate=krate, status=OutcomeStatus.SYNCED)

    # ------------------------------------------------------------------
    # Crates
    # ------------------------------------------------------------------

    def sync_krate(self, krate: Krate) -> KrateOutcome:
        """Fetch one krate and unpack it according to its source."""
        try:
            data = self.backend.fetch(krate)
        except BackendError as exc:
            logger.error("Failed to download %s: %s", krate, exc)
            return self._failed(krate, "fetch", exc)

        if krate.is_git:
            return self._sync_git(krate, data)
        return self._sync_registry(krate, data)

    def _sync_registry(self, krate: Krate, data: bytes) -> KrateOutcome:
        failure: Optional[KrateOutcome] = None

        packed_path = self.layout.cache_path / krate.local_id
        try:
            packed_path.write_bytes(data)
        except OSError as exc:
            logger.error("Failed to write %s to disk: %s", krate, exc)
            failure = self._failed(krate, "write", exc)

        src_path = self.layout.src_path / _strip_archive_suffix(krate.local_id)
        if src_path.exists():
            logger.debug("%s already unpacked in src/", krate)
        else:
            logger.debug("Unpacking %s to src/", krate)
            try:
                unpack_tar(
                    data,
                    src_path,
                    Compression.GZIP,
                    strip_prefix=f"{krate.name}-{krate.version}",
                )
            except UnpackError as exc:
                logger.error("Failed to unpack dependency %s: %s", krate, exc)
                failure = failure or self._failed(krate, "unpack", exc)

        return failure or KrateOutcome(krate=krate, status=OutcomeStatus.SYNCED)

    def _sync_git(self, krate: Krate, data: bytes) -> KrateOutcome:
        db_path = self.layout.git_db_path / krate.local_id
        try:
            unpack_tar(data, db_path, Compression.ZSTD)
        except UnpackError as exc:
            logger.error("Failed to unpack dependency %s: %s", krate, exc)
            return self._failed(krate, "unpack", exc)
        return KrateOutcome(krate=krate, status=OutcomeStatus.SYNCED)

    def sync_krates(self, krates: list[Krate]) -> list[KrateOutcome]:
        """Sync every krate in parallel; results come back in input order."""
        if not krates:
            return []

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="krate-sync"
        ) as ex:
            futures = [ex.submit(self.sync_krate, k) for k in krates]
            outcomes = []
            for krate, fut in zip(krates, futures):
                try:
                    outcomes.append(fut.result())
                except Exception as exc:
                    logger.exception("Sync task failed for %s", krate)
                    outcomes.append(self._failed(krate, None, exc))
        return outcomes

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, krates: list[Krate], include_index: bool = False) -> SyncReport:
        """Sync the locked krates (and optionally the index) into cargo's home.

        Args:
            krates: Krates from the lockfile.
            include_index: Also restore the crates.io index snapshot.

        Returns:
            SyncReport with one outcome per missing krate.

        Raises:
            CargoRootError: If the root is not a cargo home.
            OSError: If the cache directories cannot be created or read.
        """
        self.check_root()
        self.prepare()

        logger.info("Synchronizing %d crates...", len(krates))
        logger.info("Checking local cache for missing crates...")
        to_sync = self.missing(krates)

        report = SyncReport(requested=len(krates), missing=to_sync)

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="sync") as ex:
            index_future = ex.submit(self.sync_index) if include_index else None
            crates_future = ex.submit(self._sync_missing, to_sync)

            if index_future is not None:
                try:
                    report.index = index_future.result()
                except Exception as exc:
                    logger.exception("Failed to sync crates.io index")
                    report.index = self._failed(self.index_krate(), None, exc)
            report.crates = crates_future.result()

        for outcome in report.failed:
            logger.warning("%s failed at %s: %s", outcome.krate, outcome.stage, outcome.error)
        return report

    def _sync_missing(self, to_sync: list[Krate]) -> list[KrateOutcome]:
        if not to_sync:
            logger.info("All crates already available on local disk")
            return []

        logger.info("Synchronizing %d missing crates...", len(to_sync))
        outcomes = self.sync_krates(to_sync)
        logger.info(
            "Finished syncing crates: %d synced, %d failed",
            sum(1 for o in outcomes if o.status == OutcomeStatus.SYNCED),
            sum(1 for o in outcomes if o.status == OutcomeStatus.FAILED),
        )
        return outcomes

    @staticmethod
    def _failed(krate: Krate, stage: Optional[str], exc: Exception) -> KrateOutcome:
        return KrateOutcome(
            krate=krate, status=OutcomeStatus.FAILED, stage=stage, error=str(exc)
        )
