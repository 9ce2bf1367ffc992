"""
Archive unpacking -- compressed tarballs onto the local disk.

Registry crates arrive as gzip tarballs (the ``.crate`` format). Git
checkouts and the registry index snapshot arrive as zstd tarballs.

A fresh destination is only ever created by renaming a fully extracted
temporary directory into place, so a failed unpack never leaves behind
something that looks like a complete checkout.
"""

from __future__ import annotations

import gzip
import io
import logging
import shutil
import tarfile
import tempfile
from enum import Enum
from pathlib import Path
from typing import IO, Optional

import zstandard

logger = logging.getLogger("cargo_fetcher.sync.unpack")

_CHUNK_SIZE = 1 << 16


class Compression(str, Enum):
    """Compression framing around a tar stream."""

    GZIP = "gzip"
    ZSTD = "zstd"


class UnpackError(Exception):
    """Raised when an archive cannot be decoded or extracted.

    Attributes:
        path: The destination the archive was being unpacked into.
    """

    def __init__(self, path: Path, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


def _strip_filter(prefix: str):
    """Tar extraction filter that drops a leading ``prefix/`` component."""
    lead = prefix.rstrip("/") + "/"

    def _filter(member: tarfile.TarInfo, dest_path: str) -> Optional[tarfile.TarInfo]:
        name = member.name
        if name.rstrip("/") == lead.rstrip("/"):
            return None
        changes = {}
        if name.startswith(lead):
            changes["name"] = name[len(lead):]
        # Hard link targets are archive paths; symlink targets are relative
        if member.islnk() and member.linkname.startswith(lead):
            changes["linkname"] = member.linkname[len(lead):]
        if changes:
            member = member.replace(**changes, deep=False)
        return tarfile.data_filter(member, dest_path)

    return _filter


class _ZstdStream(io.RawIOBase):
    """Readable zstd decoder that fails if the frame is cut short."""

    def __init__(self, data: bytes):
        self._raw = io.BytesIO(data)
        self._decoder = zstandard.ZstdDecompressor().decompressobj()
        self._buffer = bytearray()

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        while not self._buffer and not self._decoder.eof:
            chunk = self._raw.read(_CHUNK_SIZE)
            if not chunk:
                raise EOFError("zstd stream ended before the end of the frame")
            self._buffer += self._decoder.decompress(chunk)
        n = min(len(b), len(self._buffer))
        b[:n] = self._buffer[:n]
        del self._buffer[:n]
        return n


def _open_stream(data: bytes, compression: Compression) -> IO[bytes]:
    if compression == Compression.GZIP:
        return gzip.GzipFile(fileobj=io.BytesIO(data), mode="rb")
    return io.BufferedReader(_ZstdStream(data), _CHUNK_SIZE)


def _extract(data: bytes, target: Path, compression: Compression, strip_prefix: Optional[str]) -> int:
    extraction_filter = _strip_filter(strip_prefix) if strip_prefix else "data"
    count = 0
    with _open_stream(data, compression) as stream:
        with tarfile.open(fileobj=stream, mode="r|") as tar:
            for member in tar:
                tar.extract(member, path=target, filter=extraction_filter)
                count += 1
        # tar stops at its end-of-archive blocks; the compressed stream
        # must still reach its own end marker.
        while stream.read(_CHUNK_SIZE):
            pass
    return count


def unpack_tar(
    data: bytes,
    dest: Path,
    compression: Compression,
    strip_prefix: Optional[str] = None,
) -> Path:
    """Decode a compressed tarball and extract it into *dest*.

    Args:
        data: The compressed archive.
        dest: Directory to extract into. Created if absent.
        compression: Framing around the tar stream.
        strip_prefix: Leading directory to remove from member names.

    Returns:
        The destination directory.

    Raises:
        UnpackError: If decoding or extraction fails. When *dest* already
            had content, whatever was extracted before the failure stays.
    """
    dest = Path(dest)
    merge = dest.is_dir() and any(dest.iterdir())

    if merge:
        target = dest
    else:
        dest.parent.mkdir(parents=True, exist_ok=True)
        target = Path(tempfile.mkdtemp(prefix=f".{dest.name}-", dir=dest.parent))

    try:
        count = _extract(data, target, compression, strip_prefix)
        if not merge:
            if dest.is_dir():
                dest.rmdir()
            target.replace(dest)
    except (tarfile.TarError, zstandard.ZstdError, EOFError, OSError) as exc:
        raise UnpackError(dest, f"failed to unpack {compression.value} tarball: {exc}") from exc
    finally:
        if not merge and target.exists():
            shutil.rmtree(target, ignore_errors=True)

    logger.debug("Unpacked %d entries into %s", count, dest)
    return dest
