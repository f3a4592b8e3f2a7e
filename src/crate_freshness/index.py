"""A local copy of the crates.io registry index, refreshed in the background.

The index is kept as a bare git clone. Readers get an :class:`IndexSnapshot`
pinned to one commit, so a refresh running at the same time never changes
what an existing snapshot returns; :class:`ManagedIndex` publishes a new
snapshot after each successful refresh.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from .cargo import releases_from_index_file
from .config import DEFAULT_INDEX_URL, Settings

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .models import CrateRelease

logger = logging.getLogger(__name__)


class IndexUpdateError(RuntimeError):
    """Raised when the registry index cannot be cloned or fetched."""


def crate_path(name: str) -> str:
    """Return the path of a crate's file inside the registry index.

    Examples:
        >>> crate_path("a")
        '1/a'
        >>> crate_path("cc")
        '2/cc'
        >>> crate_path("syn")
        '3/s/syn'
        >>> crate_path("Hyper")
        'hy/pe/hyper'

    """
    lower = name.lower()
    if not lower:
        msg = "Crate names cannot be empty"
        raise ValueError(msg)
    if len(lower) <= 2:  # noqa: PLR2004
        return f"{len(lower)}/{lower}"
    if len(lower) == 3:  # noqa: PLR2004
        return f"3/{lower[0]}/{lower}"
    return f"{lower[:2]}/{lower[2:4]}/{lower}"


class CrateIndex:
    """Handle to a bare git clone of a crate registry index."""

    def __init__(self, path: str | Path, url: str = DEFAULT_INDEX_URL) -> None:
        """Create a handle; nothing is read or written until it is used.

        Args:
            path: Directory of the bare clone
            url: Git remote of the registry index

        """
        self.path: Path = Path(path)
        self.url: str = url

    @classmethod
    def from_settings(cls, settings: Settings) -> CrateIndex:
        return cls(path=settings.index_path, url=settings.index_url)

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        return subprocess.run(  # noqa: S603
            ["git", *args],  # noqa: S607
            capture_output=True,
            text=True,
            encoding="utf-8",
            stdin=subprocess.DEVNULL,
            env=env,
            check=False,
        )

    def _git(self, *args: str) -> subprocess.CompletedProcess[str]:
        return self._run("--git-dir", str(self.path), *args)

    def exists(self) -> bool:
        """Check whether the index has been retrieved."""
        return (self.path / "HEAD").exists()

    def head(self) -> str | None:
        """Return the commit the index currently points at, or None if it was never retrieved."""
        if not self.exists():
            return None
        result = self._git("rev-parse", "--verify", "--quiet", "HEAD")
        return result.stdout.strip() or None

    def retrieve_or_update(self) -> str:
        """Clone the index if it is missing, otherwise fetch the newest commit.

        This blocks on the network and the filesystem.

        Returns:
            The commit the index points at afterwards

        Raises:
            IndexUpdateError: if git is unavailable or any git command fails

        """
        if shutil.which("git") is None:
            msg = "`git` does not appear to be installed! Make sure it is installed and in the PATH."
            raise IndexUpdateError(msg)

        if self.exists():
            logger.debug("Fetching %s into %s", self.url, self.path)
            steps = [("fetch", "--quiet", "--depth", "1", self.url, "HEAD"), ("update-ref", "HEAD", "FETCH_HEAD")]
            for step in steps:
                result = self._git(*step)
                if result.returncode != 0:
                    msg = f"`git {step[0]}` failed for {self.path}: {result.stderr.strip()}"
                    raise IndexUpdateError(msg)
        else:
            logger.info("Cloning %s into %s", self.url, self.path)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            result = self._run("clone", "--quiet", "--bare", "--depth", "1", self.url, str(self.path))
            if result.returncode != 0:
                msg = f"Unable to clone {self.url}: {result.stderr.strip()}"
                raise IndexUpdateError(msg)

        head = self.head()
        if head is None:
            msg = f"{self.path} does not point at any commit"
            raise IndexUpdateError(msg)
        return head

    def read(self, name: str, revision: str | None = None) -> str | None:
        """Return the index file of crate `name` at `revision` (default `HEAD`).

        Returns None if the index was never retrieved or does not know the crate.
        """
        if not self.exists():
            return None
        result = self._git("show", f"{revision or 'HEAD'}:{crate_path(name)}")
        if result.returncode != 0:
            logger.debug("No index entry for %s at %s", name, revision or "HEAD")
            return None
        return result.stdout

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self.path)!r}, url={self.url!r})"


@dataclass(frozen=True)
class IndexSnapshot:
    """Read-only view of the registry index at one commit.

    A snapshot without a revision follows whatever `HEAD` is when it is read;
    that is only the case before the first refresh has completed.
    """

    index: CrateIndex
    revision: str | None = None

    def releases(self, name: str) -> list[CrateRelease]:
        """Return every published release of crate `name`; empty if unknown."""
        contents = self.index.read(name, self.revision)
        if contents is None:
            return []
        return list(releases_from_index_file(contents))

    def iter_releases(self, names: Iterable[str]) -> Iterator[CrateRelease]:
        """Yield the releases of each crate in `names`."""
        for name in names:
            yield from self.releases(name)


class _Interval:
    """Fixed-rate timer; a tick that is already late fires at once and restarts the cadence."""

    def __init__(self, period: float) -> None:
        self.period = period
        self._deadline: float | None = None

    def reset(self) -> None:
        self._deadline = asyncio.get_running_loop().time() + self.period

    async def tick(self) -> None:
        loop = asyncio.get_running_loop()
        if self._deadline is None:
            self.reset()
        delay = self._deadline - loop.time()  # type: ignore[operator]
        if delay > 0:
            await asyncio.sleep(delay)
            self._deadline += self.period  # type: ignore[operator]
        else:
            self._deadline = loop.time() + self.period


class ManagedIndex:
    """Owns a :class:`CrateIndex` and keeps it current on a fixed timer."""

    def __init__(self, update_interval: float | timedelta, index: CrateIndex | None = None) -> None:
        """Open the index handle.

        No refresh happens here, and the timer is not armed until
        :meth:`refresh_at_interval` runs.

        Args:
            update_interval: Time between refreshes, in seconds or as a timedelta
            index: Index to manage; defaults to the one configured in `Settings`

        """
        if isinstance(update_interval, timedelta):
            update_interval = update_interval.total_seconds()
        if update_interval <= 0:
            msg = f"The update interval must be positive, not {update_interval}"
            raise ValueError(msg)
        self._index = index if index is not None else CrateIndex.from_settings(Settings())
        self._snapshot = IndexSnapshot(self._index)
        self._interval = _Interval(float(update_interval))
        self._refresh_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> ManagedIndex:
        return cls(settings.refresh_period, CrateIndex.from_settings(settings))

    @property
    def update_interval(self) -> float:
        return self._interval.period

    def index(self) -> IndexSnapshot:
        """Return the most recently published snapshot."""
        return self._snapshot

    async def refresh_at_interval(self) -> None:
        """Refresh now, then once per interval, until the task is cancelled."""
        self._interval.reset()
        while True:
            await self.refresh()
            await self._interval.tick()

    async def refresh(self) -> None:
        """Update the index off the event loop and publish the result.

        Failures are logged and otherwise ignored: the previous snapshot stays
        published and the next tick tries again.
        """
        async with self._refresh_lock:
            try:
                revision = await asyncio.to_thread(self._index.retrieve_or_update)
            except Exception:
                logger.warning("Failed to refresh %r; keeping the previous snapshot", self._index, exc_info=True)
                return
            if revision != self._snapshot.revision:
                self._snapshot = IndexSnapshot(self._index, revision)
                logger.info("Crate index is now at %s", revision)
