"""
Storage backend contract -- where the crate archives live.

The sync engine only ever holds a StorageBackend. Whether the bytes
come from a bucket or a directory is the backend's business.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import Krate


class BackendError(Exception):
    """Raised when a backend cannot serve or store an archive."""


class KrateNotFound(BackendError):
    """Raised when the backend has no archive for a krate.

    Absence is an expected state for a partially populated mirror, so
    callers can tell it apart from a failed request.
    """

    def __init__(self, krate: Krate, backend: str):
        super().__init__(f"{krate} not found in {backend} backend")
        self.krate = krate


class StorageBackend(ABC):
    """Abstract archive store.

    Implementations must be safe to call from several threads at once.
    """

    @abstractmethod
    def fetch(self, krate: Krate) -> bytes:
        """Retrieve the archived bytes for a krate.

        Args:
            krate: The krate to fetch.

        Returns:
            The archive exactly as it was uploaded.

        Raises:
            KrateNotFound: If nothing is stored for the krate.
            BackendError: On any other failure.
        """

    @abstractmethod
    def upload(self, krate: Krate, data: bytes) -> None:
        """Store the archive for a krate, replacing any previous copy."""

    @abstractmethod
    def list(self) -> list[str]:
        """Local ids of every krate currently stored."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name."""
