"""Shared test fixtures for cargo-fetcher."""

from __future__ import annotations

import io
import tarfile
import threading
from pathlib import Path

import pytest
import zstandard

from cargo_fetcher.backends.base import BackendError, KrateNotFound, StorageBackend
from cargo_fetcher.models import CratesIoSource, GitSource, Krate


def make_tar(files: dict[str, bytes], compression: str = "gz") -> bytes:
    """Build an in-memory tarball, gzip or zstd framed."""
    raw = io.BytesIO()
    mode = "w:gz" if compression == "gz" else "w"
    with tarfile.open(fileobj=raw, mode=mode) as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    data = raw.getvalue()

    if compression == "zstd":
        return zstandard.ZstdCompressor().compress(data)
    return data


class MemoryBackend(StorageBackend):
    """In-memory backend that records every fetch."""

    def __init__(self, archives: dict[str, bytes] | None = None, broken: set[str] | None = None):
        self.archives = dict(archives or {})
        self.broken = set(broken or ())
        self.fetched: list[str] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "memory"

    def fetch(self, krate: Krate) -> bytes:
        with self._lock:
            self.fetched.append(krate.local_id)
        if krate.local_id in self.broken:
            raise BackendError(f"connection reset while fetching {krate}")
        try:
            return self.archives[krate.local_id]
        except KeyError:
            raise KrateNotFound(krate, self.name) from None

    def upload(self, krate: Krate, data: bytes) -> None:
        self.archives[krate.local_id] = data

    def list(self) -> list[str]:
        return sorted(self.archives)


@pytest.fixture
def foo_krate() -> Krate:
    return Krate(name="foo", version="1.0.0", source=CratesIoSource())


@pytest.fixture
def bar_krate() -> Krate:
    return Krate(
        name="bar",
        version="0.1.0",
        source=GitSource(url="https://example.com/bar.git", ident="abcd1234"),
    )


@pytest.fixture
def cargo_home(tmp_path: Path) -> Path:
    """A cargo home that passes the sanity check."""
    home = tmp_path / ".cargo"
    (home / "bin").mkdir(parents=True)
    (home / "bin" / "cargo").write_text("#!/bin/sh\n")
    (home / "bin" / "cargo.exe").write_text("")
    return home


@pytest.fixture
def tarball():
    """Factory for gzip/zstd tarballs: ``tarball({"a.txt": b"hi"}, "zstd")``."""
    return make_tar
