"""Shared utilities for all CLI command modules.

Provides the Rich console instance, logging setup, and the helpers
that turn engine results into terminal output.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.table import Table

from ..sync.models import OutcomeStatus, SyncReport

console = Console()
logger = logging.getLogger("cargo_fetcher.cli")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LEVELS = {
    "off": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}

_handler: Optional[logging.Handler] = None


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "target": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def setup_logging(level: str = "info", json_logs: bool = False) -> None:
    """Configure cargo-fetcher's log output on the root logger.

    Calling it again replaces the previous handler.

    Args:
        level: One of off, error, warn, info, debug, trace.
        json_logs: Emit JSON lines instead of plain text.
    """
    global _handler

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_logs else logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    _handler = handler

    # Third-party loggers stay at the root's WARNING default
    logging.getLogger("cargo_fetcher").setLevel(_LEVELS.get(level.lower(), logging.INFO))


def status_icon(status: OutcomeStatus) -> str:
    """Map an outcome status to a Rich-formatted label."""
    return {
        OutcomeStatus.SYNCED: "[bold green]SYNCED[/]",
        OutcomeStatus.SKIPPED: "[dim]SKIPPED[/]",
        OutcomeStatus.FAILED: "[bold red]FAILED[/]",
    }.get(status, "[dim]UNKNOWN[/]")


def failure_table(report: SyncReport) -> Table:
    """Table listing every failed krate with stage and error."""
    table = Table(title="Failed", show_lines=False)
    table.add_column("Crate", style="cyan")
    table.add_column("Stage")
    table.add_column("Error", style="red")
    for outcome in report.failed:
        table.add_row(str(outcome.krate), outcome.stage or "-", outcome.error or "")
    return table
