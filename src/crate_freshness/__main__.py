"""Keep the local crate registry index fresh for as long as the process runs."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from .config import Settings
from .crate_freshness import version
from .index import ManagedIndex
from .logger import setup_logger

logger = logging.getLogger(__name__)


def main() -> None:
    settings = Settings()
    setup_logger(settings.log_level)

    managed = ManagedIndex.from_settings(settings)
    logger.info(
        "crate-freshness %s refreshing %s every %.0f seconds",
        version(),
        settings.index_path,
        managed.update_interval,
    )
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(managed.refresh_at_interval())


if __name__ == "__main__":
    main()
