"""URL helpers shared by the lockfile reader, the backends and the CLI."""

from __future__ import annotations

import hashlib
from pathlib import Path
from urllib.parse import parse_qs, urlsplit, urlunsplit

from .models import BackendType, StorageLocation


def canonicalize_url(url: str) -> str:
    """Normalize a git repository URL the way cargo does.

    Two spellings of the same repository must map to the same string,
    since the ident (and with it the git db directory name) is derived
    from it.
    """
    if url.startswith("git+"):
        url = url[len("git+"):]

    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"not an absolute URL: {url!r}")

    host = parts.netloc.lower()
    path = parts.path.rstrip("/")

    # GitHub paths are case-insensitive
    if host == "github.com":
        path = path.lower()

    if path.endswith(".git"):
        path = path[: -len(".git")]

    return urlunsplit((parts.scheme, host, path, "", ""))


def short_hash(text: str) -> str:
    """First 8 bytes of the SHA-256 of *text*, hex encoded."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def ident(canonical_url: str) -> str:
    """Stable directory identifier for a canonical repository URL.

    ``https://github.com/foo/bar`` becomes ``bar-<16 hex chars>``.
    """
    path = urlsplit(canonical_url).path.rstrip("/")
    name = path.rsplit("/", 1)[-1] if path else ""
    return f"{name or '_empty'}-{short_hash(canonical_url)}"


def parse_storage_url(url: str) -> StorageLocation:
    """Parse a storage URL into a StorageLocation.

    Supported forms::

        gs://bucket/optional/prefix
        s3://bucket/optional/prefix?region=us-east-1&endpoint=http://localhost:9000
        file:///absolute/path

    Raises:
        ValueError: If the scheme is unsupported or the URL is incomplete.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()

    if scheme == "file":
        raw = parts.netloc + parts.path
        if not raw:
            raise ValueError(f"file URL has no path: {url!r}")
        return StorageLocation(backend_type=BackendType.FS, path=Path(raw))

    if scheme not in ("gs", "s3"):
        raise ValueError(f"unsupported storage URL scheme: {parts.scheme!r}")
    if not parts.netloc:
        raise ValueError(f"storage URL has no bucket: {url!r}")

    prefix = parts.path.strip("/")
    if prefix:
        prefix += "/"

    if scheme == "gs":
        return StorageLocation(
            backend_type=BackendType.GCS, bucket=parts.netloc, prefix=prefix
        )

    query = parse_qs(parts.query)
    return StorageLocation(
        backend_type=BackendType.S3,
        bucket=parts.netloc,
        prefix=prefix,
        region=query.get("region", [None])[0],
        endpoint=query.get("endpoint", [None])[0],
    )
