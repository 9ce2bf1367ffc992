"""
Sync -- restore locked crates from the mirror into the local cargo home.

The engine diffs the lockfile against what cargo already has, fetches
the rest from the storage backend in parallel, and unpacks each archive
where cargo expects it.
"""

from .engine import CargoRootError, SyncEngine, SyncError, determine_cargo_root
from .models import CacheLayout, KrateOutcome, OutcomeStatus, SyncReport
from .unpack import Compression, UnpackError, unpack_tar

__all__ = [
    "CacheLayout",
    "CargoRootError",
    "Compression",
    "KrateOutcome",
    "OutcomeStatus",
    "SyncEngine",
    "SyncError",
    "SyncReport",
    "UnpackError",
    "determine_cargo_root",
    "unpack_tar",
]
