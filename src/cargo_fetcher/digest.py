"""SHA-256 content digests used as storage keys."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

DIGEST_SIZE = 32


@dataclass(frozen=True, order=True)
class Digest:
    """A SHA-256 digest held as its 32 raw bytes.

    Equality, ordering and hashing all work on the raw bytes; ``hex()``
    is only needed when the digest becomes a path segment.
    """

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != DIGEST_SIZE:
            raise ValueError(
                f"digest must be {DIGEST_SIZE} bytes, got {len(self.raw)}"
            )

    @classmethod
    def from_bytes(cls, data: bytes) -> Digest:
        """Hash a payload."""
        return cls(hashlib.sha256(data).digest())

    @classmethod
    def from_hex(cls, text: str) -> Digest:
        """Parse a 64-character hex digest.

        Raises:
            ValueError: If *text* is not valid hex of the right length.
        """
        return cls(bytes.fromhex(text.strip()))

    def hex(self) -> str:
        return self.raw.hex()

    def __str__(self) -> str:
        return self.hex()
