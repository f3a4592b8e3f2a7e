"""Core data models for dependency freshness analysis."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping
    from pathlib import Path

    from semantic_version import Version

    from .cargo import CargoSpec

# Kinds of declared dependencies, in the order they are reported
DEPENDENCY_KINDS: tuple[str, ...] = ("main", "dev", "build")

_CRATE_NAME = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
_INTERNED: dict[str, CrateName] = {}


class CrateName(str):
    """A validated, interned crate name.

    Names are compared exactly as written; a `CrateName` hashes and compares
    equal to the plain string it was built from.
    """

    __slots__ = ()

    def __new__(cls, value: str) -> CrateName:
        """Validate and intern a crate name."""
        if isinstance(value, CrateName):
            return value
        interned = _INTERNED.get(value)
        if interned is not None:
            return interned
        if not isinstance(value, str) or not _CRATE_NAME.match(value):
            msg = f"Invalid crate name: {value!r}"
            raise ValueError(msg)
        return _INTERNED.setdefault(value, super().__new__(cls, value))


class Vulnerability:
    """Represents a specific vulnerability."""

    def __init__(self, vuln_id: str, aliases: Iterable[str], summary: str) -> None:
        """Initialize a vulnerability."""
        self.id = vuln_id
        self.aliases = list(aliases)
        self.summary = summary

    def to_compact_str(self) -> str:
        """Return a compact string representation of the vulnerability."""
        return f"{self.id} ({', '.join(self.aliases)})"

    def to_obj(self) -> dict[str, str | list[str]]:
        """Convert vulnerability to dictionary representation."""
        return {"id": self.id, "aliases": self.aliases, "summary": self.summary}

    def __eq__(self, other: object) -> bool:
        """Check equality with another vulnerability."""
        if isinstance(other, Vulnerability):
            return self.id == other.id
        return False

    def __hash__(self) -> int:
        """Compute hash for vulnerability."""
        return hash(self.id)

    def __lt__(self, other: object) -> bool:
        """Compare vulnerabilities for sorting."""
        if not isinstance(other, Vulnerability):
            msg = "Need a Vulnerability"
            raise TypeError(msg)
        return self.id < other.id

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.id!r})"


@dataclass(frozen=True)
class CrateDep:
    """A declared requirement on a crate.

    Dependencies with a `path` live in the same workspace or on disk and are
    never looked up in the registry.
    """

    required: CargoSpec
    path: Path | None = None

    @property
    def is_external(self) -> bool:
        return self.path is None


def _empty_deps() -> dict[CrateName, CrateDep]:
    return {}


@dataclass
class CrateDeps:
    """Declared dependencies of a crate, split by kind."""

    main: dict[CrateName, CrateDep] = field(default_factory=_empty_deps)
    dev: dict[CrateName, CrateDep] = field(default_factory=_empty_deps)
    build: dict[CrateName, CrateDep] = field(default_factory=_empty_deps)

    def kind(self, kind: str) -> dict[CrateName, CrateDep]:
        """Return the mapping for one dependency kind."""
        if kind not in DEPENDENCY_KINDS:
            msg = f"Unknown dependency kind: {kind!r}"
            raise ValueError(msg)
        return getattr(self, kind)  # type: ignore[no-any-return]

    def names(self) -> frozenset[CrateName]:
        """Return the names of all external dependencies, across kinds."""
        return frozenset(
            name for kind in DEPENDENCY_KINDS for name, dep in self.kind(kind).items() if dep.is_external
        )


@dataclass(frozen=True)
class CrateRelease:
    """One published version of a crate, as known to the registry."""

    name: CrateName
    version: Version
    deps: CrateDeps = field(default_factory=CrateDeps, compare=False)
    yanked: bool = False

    def __str__(self) -> str:
        return f"{self.name}@{self.version}" + (" (yanked)" if self.yanked else "")


@dataclass(frozen=True)
class AnalyzedDependency:
    """Freshness and advisory status of one declared dependency."""

    required: CargoSpec
    latest_that_matches: Version | None = None
    latest: Version | None = None
    vulnerabilities: tuple[Vulnerability, ...] = ()

    @property
    def is_outdated(self) -> bool:
        """True if a release newer than every matching release exists."""
        if self.latest is None:
            return False
        return self.latest_that_matches is None or self.latest > self.latest_that_matches

    @property
    def is_insecure(self) -> bool:
        return bool(self.vulnerabilities)

    def to_obj(self) -> dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        return {
            "required": str(self.required),
            "latest_that_matches": None if self.latest_that_matches is None else str(self.latest_that_matches),
            "latest": None if self.latest is None else str(self.latest),
            "outdated": self.is_outdated,
            "vulnerabilities": [vuln.to_obj() for vuln in self.vulnerabilities],
        }


def _empty_analyzed() -> dict[CrateName, AnalyzedDependency]:
    return {}


@dataclass(frozen=True)
class AnalyzedDependencies:
    """Analysis results keyed the same way as the declared `CrateDeps`."""

    main: Mapping[CrateName, AnalyzedDependency] = field(default_factory=_empty_analyzed)
    dev: Mapping[CrateName, AnalyzedDependency] = field(default_factory=_empty_analyzed)
    build: Mapping[CrateName, AnalyzedDependency] = field(default_factory=_empty_analyzed)

    @classmethod
    def from_deps(cls, deps: CrateDeps) -> AnalyzedDependencies:
        """Seed one empty entry per external declared dependency."""
        seeded = {
            kind: {name: AnalyzedDependency(required=dep.required) for name, dep in deps.kind(kind).items() if dep.is_external}
            for kind in DEPENDENCY_KINDS
        }
        return cls(**seeded)

    def kind(self, kind: str) -> Mapping[CrateName, AnalyzedDependency]:
        """Return the mapping for one dependency kind."""
        if kind not in DEPENDENCY_KINDS:
            msg = f"Unknown dependency kind: {kind!r}"
            raise ValueError(msg)
        return getattr(self, kind)  # type: ignore[no-any-return]

    def items(self) -> Iterator[tuple[str, CrateName, AnalyzedDependency]]:
        """Iterate over `(kind, name, dependency)` for every kind."""
        for kind in DEPENDENCY_KINDS:
            for name, dep in self.kind(kind).items():
                yield kind, name, dep

    def frozen(self) -> AnalyzedDependencies:
        """Return a copy whose mappings can no longer be modified."""
        return AnalyzedDependencies(**{kind: MappingProxyType(dict(self.kind(kind))) for kind in DEPENDENCY_KINDS})

    def count_total(self) -> int:
        return sum(len(self.kind(kind)) for kind in DEPENDENCY_KINDS)

    def count_outdated(self) -> int:
        return sum(1 for _, _, dep in self.items() if dep.is_outdated)

    def count_insecure(self) -> int:
        return sum(1 for _, _, dep in self.items() if dep.is_insecure)

    def any_outdated(self) -> bool:
        return any(dep.is_outdated for _, _, dep in self.items())

    def any_insecure(self) -> bool:
        return any(dep.is_insecure for _, _, dep in self.items())

    def to_obj(self) -> dict[str, dict[str, dict[str, Any]]]:
        """Convert to a JSON-ready dictionary, one section per kind."""
        return {kind: {name: dep.to_obj() for name, dep in sorted(self.kind(kind).items())} for kind in DEPENDENCY_KINDS}
