"""
Storage backends -- where the crate archives live.

GCS: google-cloud-storage bucket + prefix.
S3: boto3 bucket + prefix, works with MinIO and friends.
FS: content-addressed blob store in a local directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..models import BackendType, StorageLocation
from .base import BackendError, KrateNotFound, StorageBackend
from .fs import FilesystemDB, FSBackend
from .gcs import GCSBackend
from .s3 import S3Backend

TEST_BUCKET = "testing"

__all__ = [
    "BackendError",
    "FSBackend",
    "FilesystemDB",
    "GCSBackend",
    "KrateNotFound",
    "S3Backend",
    "StorageBackend",
    "TEST_BUCKET",
    "create_backend",
]


def create_backend(
    loc: StorageLocation, credentials: Optional[Path] = None
) -> StorageBackend:
    """Factory function to create the appropriate backend.

    Args:
        loc: Parsed storage location.
        credentials: Service account file, used by the GCS backend only.

    Returns:
        Instantiated StorageBackend.

    Raises:
        ValueError: If the location is incomplete for its backend type.
        BackendError: If the local test bucket cannot be created.
    """
    if loc.backend_type == BackendType.GCS:
        return GCSBackend(loc, credentials=credentials)
    if loc.backend_type == BackendType.S3:
        backend = S3Backend(loc)
        # Local S3 test servers start empty
        if loc.bucket == TEST_BUCKET and "localhost" in (loc.endpoint or ""):
            backend.make_bucket()
        return backend
    if loc.backend_type == BackendType.FS:
        if loc.path is None:
            raise ValueError("filesystem backend requires a path")
        return FSBackend(loc.path)
    raise ValueError(f"Unsupported backend: {loc.backend_type}")
