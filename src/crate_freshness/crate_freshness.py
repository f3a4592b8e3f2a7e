"""Version and application directory utilities for crate-freshness."""

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as meta_version

from platformdirs import PlatformDirs


def version() -> str:
    """Get the installed version of crate-freshness."""
    try:
        return meta_version("crate-freshness")
    except PackageNotFoundError:
        return "0.0.0"


APP_DIRS = PlatformDirs("crate-freshness", "Trail of Bits")
