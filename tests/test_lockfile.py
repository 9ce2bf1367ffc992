"""Tests for Cargo.lock parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from cargo_fetcher.lockfile import LockfileError, parse_lock_file, read_lock_file
from cargo_fetcher.models import CratesIoSource, GitSource
from cargo_fetcher.util import ident

LOCK = """\
version = 3

[[package]]
name = "myapp"
version = "0.1.0"
dependencies = ["serde", "bar"]

[[package]]
name = "serde"
version = "1.0.130"
source = "registry+https://github.com/rust-lang/crates.io-index"
checksum = "f12d06de37cf59146fbdecab66aa99f9fe4f78722e3607577a5375d66bd0c913"

[[package]]
name = "bar"
version = "0.2.0"
source = "git+https://github.com/Example/Bar.git?branch=main#0123456789abcdef"

[[package]]
name = "private"
version = "1.0.0"
source = "registry+https://my-registry.example.com/index"
"""


class TestParseLockFile:
    def test_registry_crate(self):
        krates = parse_lock_file(LOCK)
        serde = next(k for k in krates if k.name == "serde")
        assert serde.version == "1.0.130"
        assert isinstance(serde.source, CratesIoSource)
        assert serde.local_id == "serde-1.0.130.crate"

    def test_git_crate(self):
        bar = next(k for k in parse_lock_file(LOCK) if k.name == "bar")
        assert isinstance(bar.source, GitSource)
        assert bar.source.url == "https://github.com/example/bar"
        assert bar.source.rev == "0123456789abcdef"
        assert bar.source.ident == ident("https://github.com/example/bar")
        assert bar.local_id == f"bar-{bar.source.ident}"

    def test_workspace_members_skipped(self):
        assert "myapp" not in {k.name for k in parse_lock_file(LOCK)}

    def test_unsupported_registry_skipped(self, caplog):
        with caplog.at_level("WARNING", logger="cargo_fetcher"):
            names = [k.name for k in parse_lock_file(LOCK)]
        assert names == ["serde", "bar"]
        assert "private-1.0.0" in caplog.text

    def test_duplicates_collapsed(self):
        entry = (
            '[[package]]\nname = "a"\nversion = "1.0.0"\n'
            'source = "registry+https://github.com/rust-lang/crates.io-index"\n\n'
        )
        assert len(parse_lock_file(entry * 3)) == 1

    def test_same_name_different_versions_kept(self):
        text = "".join(
            f'[[package]]\nname = "a"\nversion = "{v}"\n'
            'source = "registry+https://github.com/rust-lang/crates.io-index"\n\n'
            for v in ("1.0.0", "2.0.0")
        )
        assert [k.version for k in parse_lock_file(text)] == ["1.0.0", "2.0.0"]

    def test_empty_lockfile(self):
        assert parse_lock_file("version = 3\n") == []

    def test_invalid_toml(self):
        with pytest.raises(LockfileError):
            parse_lock_file("[[package]\nname = ")

    def test_package_not_array(self):
        with pytest.raises(LockfileError):
            parse_lock_file('package = "nope"\n')

    def test_missing_version(self):
        with pytest.raises(LockfileError, match="missing name or version"):
            parse_lock_file('[[package]]\nname = "a"\nsource = "git+https://x.com/a#1"\n')

    def test_relative_git_url(self):
        with pytest.raises(LockfileError):
            parse_lock_file('[[package]]\nname = "a"\nversion = "1.0.0"\nsource = "git+foo/bar#1"\n')


class TestReadLockFile:
    def test_reads_from_disk(self, tmp_path: Path):
        path = tmp_path / "Cargo.lock"
        path.write_text(LOCK)
        assert len(read_lock_file(path)) == 2

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(LockfileError, match="failed to read"):
            read_lock_file(tmp_path / "nope.lock")
