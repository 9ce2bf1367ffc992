"""
Core data models -- what a locked dependency is and where it lives.

A Krate is one ``[[package]]`` entry from Cargo.lock. Its Source says
whether it came from crates.io or from a git repository. Everything
here is immutable and safe to share between worker threads.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CratesIoSource(BaseModel):
    """A crate published to the crates.io registry."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["crates-io"] = "crates-io"


class GitSource(BaseModel):
    """A crate checked out from a git repository.

    Attributes:
        url: Canonicalized repository URL.
        ident: Short, filesystem-safe identifier derived from the URL.
        rev: Locked commit, when the lockfile records one.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["git"] = "git"
    url: str
    ident: str
    rev: Optional[str] = None


Source = Annotated[Union[CratesIoSource, GitSource], Field(discriminator="kind")]


class Krate(BaseModel):
    """One locked dependency: name, version and provenance."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    source: Source

    @property
    def is_git(self) -> bool:
        return isinstance(self.source, GitSource)

    @property
    def local_id(self) -> str:
        """Filesystem-safe name used as storage key and cache filename.

        Registry crates map to ``name-version.crate`` (cargo's own cache
        filename), git crates to ``name-ident`` (cargo's git db dirname).
        """
        if isinstance(self.source, GitSource):
            return f"{self.name}-{self.source.ident}"
        return f"{self.name}-{self.version}.crate"

    def __str__(self) -> str:
        if isinstance(self.source, GitSource):
            return f"{self.name}-{self.version} ({self.source.url})"
        return f"{self.name}-{self.version}"


class BackendType(str, Enum):
    """Supported storage backends."""

    GCS = "gcs"
    S3 = "s3"
    FS = "fs"


class StorageLocation(BaseModel):
    """Where archives are stored, parsed from a storage URL.

    Object stores use ``bucket`` + ``prefix``; the filesystem backend
    uses ``path``.
    """

    backend_type: BackendType
    bucket: Optional[str] = None
    prefix: str = ""
    path: Optional[Path] = None

    # S3-specific
    region: Optional[str] = None
    endpoint: Optional[str] = None
