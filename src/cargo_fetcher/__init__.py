"""
cargo-fetcher -- serve locked Rust dependencies from a private mirror.

Crate archives and git checkouts live in a storage backend (GCS, S3 or
a plain directory). ``sync`` pulls whatever the lockfile needs into the
local cargo home so builds never touch crates.io.
"""

__version__ = "0.1.0"
__author__ = "cargo-fetcher contributors"
