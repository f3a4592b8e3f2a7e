"""Functions for logging."""

import logging

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(level: str, fmt: str = DEFAULT_FORMAT) -> None:
    """Configure the root logger so all modules log to stderr with a single handler."""
    level_value = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level_value)
    # Drop handlers installed by earlier calls so records are not emitted twice
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt))
    root_logger.addHandler(handler)
    # git and OSV traffic is only interesting when debugging
    if level_value > logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
