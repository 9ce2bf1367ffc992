"""Cargo.lock reader -- turns ``[[package]]`` entries into Krates."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from .models import CratesIoSource, GitSource, Krate
from .util import canonicalize_url, ident

logger = logging.getLogger("cargo_fetcher.lockfile")

CRATES_IO_SOURCE = "registry+https://github.com/rust-lang/crates.io-index"


class LockfileError(Exception):
    """Raised when a lockfile cannot be read or understood."""


def _git_source(source: str) -> GitSource:
    """Parse ``git+<url>[?query]#<rev>`` into a GitSource."""
    parts = urlsplit(source[len("git+"):])
    rev = parts.fragment or None
    url = canonicalize_url(urlunsplit((parts.scheme, parts.netloc, parts.path, "", "")))
    return GitSource(url=url, ident=ident(url), rev=rev)


def parse_lock_file(text: str) -> list[Krate]:
    """Parse the contents of a Cargo.lock.

    Workspace members (no ``source``) are skipped, as are crates from
    registries other than crates.io.

    Raises:
        LockfileError: On invalid TOML or malformed package entries.
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise LockfileError(f"invalid lockfile: {exc}") from exc

    packages = data.get("package", [])
    if not isinstance(packages, list):
        raise LockfileError("invalid lockfile: 'package' is not an array of tables")

    krates: list[Krate] = []
    seen: set[Krate] = set()
    for entry in packages:
        try:
            name = entry["name"]
            version = entry["version"]
        except (KeyError, TypeError):
            raise LockfileError(f"package entry missing name or version: {entry!r}") from None

        source = entry.get("source")
        if source is None:
            continue

        if source == CRATES_IO_SOURCE:
            krate = Krate(name=name, version=version, source=CratesIoSource())
        elif source.startswith("git+"):
            try:
                krate = Krate(name=name, version=version, source=_git_source(source))
            except ValueError as exc:
                raise LockfileError(f"bad git source for {name}-{version}: {exc}") from exc
        else:
            logger.warning("Skipping %s-%s from unsupported source %s", name, version, source)
            continue

        if krate not in seen:
            seen.add(krate)
            krates.append(krate)

    return krates


def read_lock_file(path: Path) -> list[Krate]:
    """Read and parse a Cargo.lock from disk.

    Raises:
        LockfileError: If the file is unreadable or invalid.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise LockfileError(f"failed to read {path}: {exc}") from exc

    krates = parse_lock_file(text)
    logger.debug("Read %d crates from %s", len(krates), path)
    return krates
