"""Tests for krate identity -- sources, local ids, equality."""

from __future__ import annotations

import pydantic
import pytest

from cargo_fetcher.models import (
    BackendType,
    CratesIoSource,
    GitSource,
    Krate,
    StorageLocation,
)


class TestLocalId:
    """Local ids double as storage keys and cache filenames."""

    def test_registry_krate_uses_crate_filename(self, foo_krate):
        assert foo_krate.local_id == "foo-1.0.0.crate"

    def test_git_krate_uses_ident(self, bar_krate):
        assert bar_krate.local_id == "bar-abcd1234"

    def test_git_local_id_ignores_version(self, bar_krate):
        bumped = bar_krate.model_copy(update={"version": "0.2.0"})
        assert bumped.local_id == bar_krate.local_id

    def test_sorted_ids_match_string_order(self):
        krates = [
            Krate(name=n, version=v, source=CratesIoSource())
            for n, v in [("serde", "1.0.0"), ("anyhow", "1.0.71"), ("serde_json", "1.0.99")]
        ]
        ids = sorted(k.local_id for k in krates)
        assert ids == ["anyhow-1.0.71.crate", "serde-1.0.0.crate", "serde_json-1.0.99.crate"]


class TestKrateIdentity:
    """Same name, version and source means the same dependency."""

    def test_equal_krates(self, foo_krate):
        other = Krate(name="foo", version="1.0.0", source=CratesIoSource())
        assert other == foo_krate
        assert hash(other) == hash(foo_krate)

    def test_different_source_not_equal(self, foo_krate):
        git = Krate(
            name="foo",
            version="1.0.0",
            source=GitSource(url="https://example.com/foo", ident="foo-1234"),
        )
        assert git != foo_krate

    def test_frozen(self, foo_krate):
        with pytest.raises(pydantic.ValidationError):
            foo_krate.name = "bar"

    def test_usable_in_sets(self, foo_krate, bar_krate):
        assert len({foo_krate, bar_krate, foo_krate}) == 2

    def test_is_git(self, foo_krate, bar_krate):
        assert not foo_krate.is_git
        assert bar_krate.is_git

    def test_source_from_dict(self):
        krate = Krate.model_validate({
            "name": "bar",
            "version": "0.1.0",
            "source": {"kind": "git", "url": "https://example.com/bar", "ident": "bar-1"},
        })
        assert isinstance(krate.source, GitSource)
        assert krate.source.rev is None


class TestDisplay:
    def test_registry_display(self, foo_krate):
        assert str(foo_krate) == "foo-1.0.0"

    def test_git_display_includes_url(self, bar_krate):
        assert str(bar_krate) == "bar-0.1.0 (https://example.com/bar.git)"


class TestStorageLocation:
    def test_defaults(self):
        loc = StorageLocation(backend_type=BackendType.GCS, bucket="b")
        assert loc.prefix == ""
        assert loc.path is None
