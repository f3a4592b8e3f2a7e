"""Configuration settings for crate-freshness."""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path  # noqa: TC003

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .crate_freshness import APP_DIRS

DEFAULT_INDEX_URL = "https://github.com/rust-lang/crates.io-index"
DEFAULT_INDEX_PATH = APP_DIRS.user_cache_path / "crates.io-index"
DEFAULT_OSV_URL = "https://api.osv.dev/v1/query"


class Settings(BaseSettings):
    """Settings for crate-freshness, read from `CRATE_FRESHNESS_*` environment variables."""

    index_url: str = Field(
        default=DEFAULT_INDEX_URL,
        description="""Git remote of the crate registry index.""",
    )
    index_path: Path = Field(
        default=DEFAULT_INDEX_PATH,
        description="""Where the bare clone of the registry index is stored.
        The directory is created on the first refresh.""",
    )
    refresh_interval: float = Field(
        default=600.0,
        gt=0,
        description="""Seconds between two refreshes of the registry index.""",
    )
    audit: bool = Field(
        default=True,
        description="""Query Google OSV for advisories affecting the latest matching releases.""",
    )
    osv_url: str = Field(default=DEFAULT_OSV_URL, description="OSV query endpoint")
    osv_timeout: float = Field(
        default=30.0,
        gt=0,
        description="""Maximum seconds to wait for a single OSV response.""",
    )
    max_workers: int = Field(
        default=-1,
        description="""Maximum number of advisory queries to run concurrently.
            If not provided, the number of logical CPUs will be used.""",
    )
    log_level: str = Field(default="info", description="Log level")

    model_config = SettingsConfigDict(env_prefix="CRATE_FRESHNESS_")

    @property
    def refresh_period(self) -> timedelta:
        """Return the refresh interval as a timedelta."""
        return timedelta(seconds=self.refresh_interval)

    @property
    def worker_count(self) -> int:
        """Return the effective number of advisory workers."""
        if self.max_workers == -1:
            return os.cpu_count() or 1
        return self.max_workers
