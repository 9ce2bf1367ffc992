"""Tests for the cargo-fetcher CLI."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import make_tar
from cargo_fetcher.backends import FSBackend
from cargo_fetcher.cli import _common, main
from cargo_fetcher.models import CratesIoSource, Krate

LOCK = """\
version = 3

[[package]]
name = "foo"
version = "1.0.0"
source = "registry+https://github.com/rust-lang/crates.io-index"

[[package]]
name = "baz"
version = "2.0.0"
source = "registry+https://github.com/rust-lang/crates.io-index"
"""

FOO = Krate(name="foo", version="1.0.0", source=CratesIoSource())


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch):
    monkeypatch.delenv("CARGO_FETCHER_CONFIG", raising=False)
    yield
    if _common._handler is not None:
        logging.getLogger().removeHandler(_common._handler)
        _common._handler = None
    logging.getLogger("cargo_fetcher").setLevel(logging.NOTSET)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path, cargo_home: Path):
    """A lockfile, a file:// mirror holding foo only, and a cargo home."""
    lock = tmp_path / "Cargo.lock"
    lock.write_text(LOCK)
    mirror = FSBackend(tmp_path / "mirror")
    mirror.upload(FOO, make_tar({"foo-1.0.0/Cargo.toml": b"[package]\n"}, "gz"))
    return {
        "lock": lock,
        "url": f"file://{tmp_path / 'mirror'}",
        "home": cargo_home,
        "config": tmp_path / "absent.yaml",
    }


def _text(result) -> str:
    return " ".join(result.output.split())


def _invoke(runner, project, *args, extra=()):
    return runner.invoke(
        main,
        [
            "--config", str(project["config"]),
            "--url", project["url"],
            "--lock-file", str(project["lock"]),
            *extra,
            "sync", "--cargo-root", str(project["home"]), *args,
        ],
    )


class TestMainGroup:
    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "cargo-fetcher" in result.output

    def test_help_lists_sync(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "sync" in result.output

    def test_bad_log_level(self, runner):
        result = runner.invoke(main, ["--log-level", "loud", "sync"])
        assert result.exit_code == 2


class TestSync:
    def test_partial_failure_exits_zero(self, runner, project):
        result = _invoke(runner, project)
        assert result.exit_code == 0, result.output
        assert "1 synced" in result.output
        assert "1 failed" in result.output
        assert "baz-2.0.0" in result.output

        src = project["home"] / "registry/src/github.com-1ecc6299db9ec823/foo-1.0.0"
        assert (src / "Cargo.toml").exists()

    def test_second_run_everything_cached(self, runner, project):
        _invoke(runner, project)
        result = _invoke(runner, project)
        assert result.exit_code == 0
        assert "0 synced" in result.output
        assert "1 already cached" in result.output

    def test_dry_run_lists_missing(self, runner, project):
        result = _invoke(runner, project, "--dry-run")
        assert result.exit_code == 0
        assert "foo-1.0.0.crate" in result.output
        assert "baz-2.0.0.crate" in result.output
        assert not (project["home"] / "registry/cache/github.com-1ecc6299db9ec823/foo-1.0.0.crate").exists()

    def test_missing_url(self, runner, project):
        result = runner.invoke(
            main,
            ["--config", str(project["config"]), "--lock-file", str(project["lock"]), "sync"],
        )
        assert result.exit_code == 1
        assert "no storage URL" in _text(result)

    def test_unsupported_url(self, runner, project):
        project["url"] = "ftp://mirror/crates"
        result = _invoke(runner, project)
        assert result.exit_code == 1
        assert "invalid storage location" in _text(result)

    def test_missing_lockfile(self, runner, project, tmp_path):
        project["lock"] = tmp_path / "missing.lock"
        result = _invoke(runner, project)
        assert result.exit_code == 1
        assert "lock file" in _text(result)

    def test_missing_cargo_binary(self, runner, project):
        (project["home"] / "bin" / "cargo").unlink()
        (project["home"] / "bin" / "cargo.exe").unlink()
        result = _invoke(runner, project)
        assert result.exit_code == 1
        assert "cargo binary" in _text(result)

    def test_undeterminable_cargo_root(self, runner, project, monkeypatch):
        monkeypatch.delenv("CARGO_HOME", raising=False)
        monkeypatch.delenv("HOME", raising=False)
        monkeypatch.setattr("posixpath.expanduser", lambda path: path)
        result = runner.invoke(
            main,
            [
                "--config", str(project["config"]),
                "--url", project["url"],
                "--lock-file", str(project["lock"]),
                "sync",
            ],
        )
        assert result.exit_code == 1
        assert "unable to determine cargo root" in _text(result)

    def test_index_failure_reported(self, runner, project):
        result = _invoke(runner, project, extra=("--include-index",))
        assert result.exit_code == 0
        assert "Index:" in result.output
        assert "FAILED" in result.output

    def test_url_from_config_file(self, runner, project):
        project["config"].write_text(f"url: {project['url']}\nmax_workers: 2\n")
        result = runner.invoke(
            main,
            [
                "--config", str(project["config"]),
                "--lock-file", str(project["lock"]),
                "sync", "--cargo-root", str(project["home"]),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "1 synced" in result.output


class TestLogging:
    def test_level_applied(self):
        _common.setup_logging("debug")
        assert logging.getLogger("cargo_fetcher").level == logging.DEBUG
        _common.setup_logging("off")
        assert logging.getLogger("cargo_fetcher").level > logging.CRITICAL

    def test_handler_replaced(self):
        root = logging.getLogger()
        _common.setup_logging("info")
        first = _common._handler
        _common.setup_logging("info")
        assert first not in root.handlers
        assert _common._handler in root.handlers

    def test_json_formatter(self):
        record = logging.LogRecord(
            "cargo_fetcher.sync.engine", logging.WARNING, __file__, 1, "hello %s", ("world",), None
        )
        entry = json.loads(_common.JsonFormatter().format(record))
        assert entry["level"] == "WARNING"
        assert entry["target"] == "cargo_fetcher.sync.engine"
        assert entry["message"] == "hello world"
