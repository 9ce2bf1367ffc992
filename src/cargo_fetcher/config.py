"""
Fetcher configuration -- defaults for every CLI option, loaded from YAML.

Lookup order for the file: explicit path, ``$CARGO_FETCHER_CONFIG``,
``~/.cargo-fetcher/config.yaml``. Command-line options always win.

Example::

    url: gs://my-bucket/crates
    include_index: true
    max_workers: 16
    log_level: debug
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger("cargo_fetcher.config")

DEFAULT_CONFIG_PATH = Path("~/.cargo-fetcher/config.yaml")

LOG_LEVELS = ("off", "error", "warn", "info", "debug", "trace")


def _default_credentials() -> Optional[Path]:
    env = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    return Path(env) if env else None


class FetcherConfig(BaseModel):
    """Settings shared by every cargo-fetcher command."""

    url: Optional[str] = None
    lock_file: Path = Path("Cargo.lock")
    include_index: bool = False
    cargo_root: Optional[Path] = None
    credentials: Optional[Path] = Field(default_factory=_default_credentials)
    max_workers: Optional[int] = Field(default=None, ge=1)
    log_level: str = "info"
    json_logs: bool = False

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Accept only the documented level names."""
        v = v.lower()
        if v not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}: got '{v}'")
        return v


def config_path(path: Optional[Path] = None) -> Path:
    """Resolve which config file to read."""
    if path:
        return Path(path).expanduser()
    env = os.environ.get("CARGO_FETCHER_CONFIG")
    if env:
        return Path(env).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def load_config(path: Optional[Path] = None) -> FetcherConfig:
    """Load configuration from disk.

    A missing file gives the defaults. An unreadable or invalid file
    is logged and also gives the defaults.
    """
    config_file = config_path(path)
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            return FetcherConfig(**data)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as exc:
            logger.warning("Failed to load config %s: %s", config_file, exc)
    return FetcherConfig()
