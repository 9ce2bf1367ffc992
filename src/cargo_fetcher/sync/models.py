"""
Sync data models -- cache layout and per-krate outcomes.
"""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ..models import Krate

CRATES_IO_INDEX_URL = "git+https://github.com/rust-lang/crates.io-index.git"
CRATES_IO_REGISTRY_ID = "github.com-1ecc6299db9ec823"


class CacheLayout(BaseModel):
    """Where cargo keeps things under its home directory.

    Every path is relative to ``root`` so tests can point the engine
    at a temporary directory without touching engine logic.
    """

    root: Path
    registry_id: str = CRATES_IO_REGISTRY_ID
    index_url: str = CRATES_IO_INDEX_URL

    index_dir: str = "registry/index"
    cache_dir: str = "registry/cache"
    src_dir: str = "registry/src"
    git_db_dir: str = "git/db"
    sanity_binary: str = "bin/cargo"

    @property
    def index_path(self) -> Path:
        return self.root / self.index_dir / self.registry_id

    @property
    def cache_path(self) -> Path:
        return self.root / self.cache_dir / self.registry_id

    @property
    def src_path(self) -> Path:
        return self.root / self.src_dir / self.registry_id

    @property
    def git_db_path(self) -> Path:
        return self.root / self.git_db_dir

    @property
    def sanity_binary_path(self) -> Path:
        path = self.root / self.sanity_binary
        if sys.platform == "win32":
            path = path.with_suffix(".exe")
        return path

    def directories(self) -> list[Path]:
        """The four cache directories a sync populates."""
        return [self.index_path, self.cache_path, self.src_path, self.git_db_path]


class OutcomeStatus(str, Enum):
    """What happened to one krate during a sync."""

    SYNCED = "synced"
    SKIPPED = "skipped"
    FAILED = "failed"


class KrateOutcome(BaseModel):
    """Result of syncing a single krate (or the registry index)."""

    krate: Krate
    status: OutcomeStatus
    stage: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != OutcomeStatus.FAILED


class SyncReport(BaseModel):
    """Aggregate result of a sync run."""

    requested: int = 0
    missing: list[Krate] = Field(default_factory=list)
    index: Optional[KrateOutcome] = None
    crates: list[KrateOutcome] = Field(default_factory=list)

    @property
    def synced(self) -> list[KrateOutcome]:
        return [o for o in self.crates if o.status == OutcomeStatus.SYNCED]

    @property
    def failed(self) -> list[KrateOutcome]:
        failures = [o for o in self.crates if o.status == OutcomeStatus.FAILED]
        if self.index is not None and self.index.status == OutcomeStatus.FAILED:
            failures.insert(0, self.index)
        return failures

    @property
    def ok(self) -> bool:
        return not self.failed
