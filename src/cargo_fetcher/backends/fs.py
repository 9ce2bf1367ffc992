"""
Filesystem backend -- a content-addressed blob store on local disk.

Layout under the backend root::

    blobs/<sha256-hex>      archive bytes, keyed by content
    krates/<local-id>       text file holding the blob's hex digest

Two krates with byte-identical archives share one blob. Handy for
USB drives, NFS shares and tests.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ..digest import Digest
from ..models import Krate
from .base import BackendError, KrateNotFound, StorageBackend

logger = logging.getLogger("cargo_fetcher.backends.fs")


class FilesystemDB:
    """Blob store keyed by the SHA-256 of each payload."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _entry_path(self, key: Digest) -> Path:
        return self.root / key.hex()

    def insert(self, value: bytes) -> Digest:
        """Store a payload and return the digest it is filed under.

        Identical content always lands on the same path, so overwriting
        an existing entry is harmless.
        """
        key = Digest.from_bytes(value)
        self._entry_path(key).write_bytes(value)
        return key

    def lookup(self, key: Digest) -> Optional[bytes]:
        """Read the payload stored under *key*.

        Returns:
            The payload, or None if nothing was ever inserted under *key*.

        Raises:
            OSError: For any failure other than the entry being absent.
        """
        try:
            return self._entry_path(key).read_bytes()
        except FileNotFoundError:
            return None


class FSBackend(StorageBackend):
    """Krate-addressed view on top of a FilesystemDB."""

    def __init__(self, path: Path):
        self.root = Path(path).expanduser()
        self.blobs = FilesystemDB(self.root / "blobs")
        self.krates_dir = self.root / "krates"
        self.krates_dir.mkdir(parents=True, exist_ok=True)

    @property
    def name(self) -> str:
        return "fs"

    def fetch(self, krate: Krate) -> bytes:
        pointer = self.krates_dir / krate.local_id
        try:
            key = Digest.from_hex(pointer.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise KrateNotFound(krate, self.name) from None
        except ValueError as exc:
            raise BackendError(f"corrupt index entry for {krate}: {exc}") from exc
        except OSError as exc:
            raise BackendError(f"failed to read index entry for {krate}: {exc}") from exc

        try:
            data = self.blobs.lookup(key)
        except OSError as exc:
            raise BackendError(f"failed to read blob {key} for {krate}: {exc}") from exc
        if data is None:
            raise KrateNotFound(krate, self.name)

        if Digest.from_bytes(data) != key:
            raise BackendError(f"blob {key} for {krate} failed digest verification")

        logger.debug("Fetched %s from %s (%d bytes)", krate, self.root, len(data))
        return data

    def upload(self, krate: Krate, data: bytes) -> None:
        try:
            key = self.blobs.insert(data)
            # Pointer only appears once its blob is fully written.
            fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=self.krates_dir)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(key.hex())
            os.replace(tmp, self.krates_dir / krate.local_id)
        except OSError as exc:
            raise BackendError(f"failed to store {krate}: {exc}") from exc
        logger.info("Stored %s as blob %s", krate, key)

    def list(self) -> list[str]:
        return sorted(
            p.name for p in self.krates_dir.iterdir()
            if p.is_file() and not p.name.startswith(".")
        )
