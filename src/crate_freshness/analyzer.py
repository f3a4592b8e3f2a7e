"""Track the newest matching and newest overall release of declared dependencies."""

from __future__ import annotations

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import TYPE_CHECKING

from semantic_version import Version
from tqdm import tqdm

from .audit import OSVProject
from .models import DEPENDENCY_KINDS, AnalyzedDependencies, AnalyzedDependency, CrateName

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .audit import VulnerabilityProvider
    from .config import Settings
    from .index import IndexSnapshot
    from .models import CrateDeps, CrateRelease, Vulnerability

logger = logging.getLogger(__name__)


def _build_key(version: Version) -> tuple[tuple[int, int | str], ...]:
    # numeric identifiers sort below alphanumeric ones; no metadata sorts first
    return tuple((0, int(part)) if part.isdigit() else (1, part) for part in version.build)


def _is_newer(version: Version, current: Version | None) -> bool:
    """Order releases by precedence, breaking ties on build metadata."""
    if current is None or current < version:
        return True
    if version < current:
        return False
    return _build_key(version) > _build_key(current)


def _advisory_query(name: str, version: Version) -> tuple[CrateName, Version]:
    """Re-validate a tracked name and version before handing them to an advisory source.

    Both were validated when they entered the analyzer, so a failure here
    means the tracked state is corrupt and the `ValueError` is left to abort
    the caller.
    """
    return CrateName(str(name)), Version(str(version))


class DependencyAnalyzer:
    """Accumulate release information for a set of declared dependencies.

    Feed releases with :meth:`process` as many times as needed, then call
    :meth:`finalize` exactly once to attach advisories and obtain the
    read-only results.
    """

    def __init__(
        self,
        deps: CrateDeps,
        advisory_db: VulnerabilityProvider | None = None,
        *,
        max_workers: int | None = None,
    ) -> None:
        """Seed one empty entry per external dependency of `deps`.

        Args:
            deps: Declared dependencies, split by kind
            advisory_db: Advisory source; None disables vulnerability lookups
            max_workers: Number of concurrent advisory queries

        """
        seeded = AnalyzedDependencies.from_deps(deps)
        self._deps: dict[str, dict[CrateName, AnalyzedDependency]] | None = {
            kind: dict(seeded.kind(kind)) for kind in DEPENDENCY_KINDS
        }
        self.advisory_db = advisory_db
        self.max_workers = max_workers

    @classmethod
    def from_settings(cls, deps: CrateDeps, settings: Settings) -> DependencyAnalyzer:
        """Build an analyzer that audits through OSV unless auditing is disabled."""
        return cls(deps, OSVProject.from_settings(settings), max_workers=settings.worker_count)

    @property
    def finalized(self) -> bool:
        return self._deps is None

    def _accumulating(self) -> dict[str, dict[CrateName, AnalyzedDependency]]:
        if self._deps is None:
            msg = "DependencyAnalyzer has already been finalized"
            raise RuntimeError(msg)
        return self._deps

    @staticmethod
    def _process_single(tracked: dict[CrateName, AnalyzedDependency], name: CrateName, version: Version) -> None:
        dep = tracked[name]
        latest_that_matches = dep.latest_that_matches
        latest = dep.latest
        if dep.required.match(version) and _is_newer(version, latest_that_matches):
            latest_that_matches = version
        if not version.prerelease and _is_newer(version, latest):
            latest = version
        if latest_that_matches is not dep.latest_that_matches or latest is not dep.latest:
            tracked[name] = replace(dep, latest_that_matches=latest_that_matches, latest=latest)

    def process(self, releases: Iterable[CrateRelease]) -> None:
        """Update the tracked dependencies with a batch of releases.

        Yanked releases and releases of crates that are not declared are
        ignored. Batches may arrive in any order and may repeat releases.
        """
        deps = self._accumulating()
        for release in releases:
            if release.yanked:
                continue
            for kind in DEPENDENCY_KINDS:
                tracked = deps[kind]
                if release.name in tracked:
                    self._process_single(tracked, release.name, release.version)

    def _process_advisories(self, deps: dict[str, dict[CrateName, AnalyzedDependency]]) -> None:
        """Attach the advisories of every latest matching release."""
        advisory_db = self.advisory_db

        # The same release can be tracked by several kinds; query it once.
        slots: dict[tuple[CrateName, Version], list[tuple[str, CrateName]]] = defaultdict(list)
        for kind in DEPENDENCY_KINDS:
            for name, dep in deps[kind].items():
                if dep.latest_that_matches is not None:
                    slots[_advisory_query(name, dep.latest_that_matches)].append((kind, name))

        if advisory_db is None or not slots:
            return

        def _get_vulninfo(name: CrateName, version: Version) -> tuple[Vulnerability, ...]:
            # Do not touch `deps` here; the calling thread assigns the results.
            return tuple(advisory_db.query(name, version))

        with (
            ThreadPoolExecutor(max_workers=self.max_workers) as executor,
            tqdm(desc="Checking for vulnerabilities", leave=False, unit=" crates", total=len(slots)) as t,
        ):
            futures = {executor.submit(_get_vulninfo, name, version): (name, version) for name, version in slots}

            for future in as_completed(futures):
                name, version = futures[future]
                try:
                    t.update(1)
                    vulns = future.result()
                except Exception:  # noqa: PERF203
                    logger.exception("Failed to retrieve vulnerability information for %s@%s", name, version)
                    continue
                if not vulns:
                    continue
                for kind, tracked_name in slots[(name, version)]:
                    deps[kind][tracked_name] = replace(deps[kind][tracked_name], vulnerabilities=vulns)

    def finalize(self) -> AnalyzedDependencies:
        """Attach advisories and return the read-only results.

        The analyzer cannot be used afterwards.
        """
        deps = self._accumulating()
        self._deps = None
        self._process_advisories(deps)
        return AnalyzedDependencies(**deps).frozen()


def analyze_dependencies(
    deps: CrateDeps,
    snapshot: IndexSnapshot,
    advisory_db: VulnerabilityProvider | None = None,
    *,
    max_workers: int | None = None,
) -> AnalyzedDependencies:
    """Analyze `deps` against every release a registry index snapshot knows about."""
    analyzer = DependencyAnalyzer(deps, advisory_db, max_workers=max_workers)
    analyzer.process(snapshot.iter_releases(sorted(deps.names())))
    return analyzer.finalize()
