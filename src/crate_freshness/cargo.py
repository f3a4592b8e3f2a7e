"""Cargo version requirements and crate registry index records."""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

from semantic_version import SimpleSpec, Version
from semantic_version.base import Always, BaseSpec

from .models import CrateDep, CrateDeps, CrateName, CrateRelease

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

# Index `kind` values and the `CrateDeps` mapping each one lands in
INDEX_DEPENDENCY_KINDS = {None: "main", "normal": "main", "dev": "dev", "build": "build"}

# A comparator pinned to a pre-release, e.g. `^1.2.0-alpha.1`
_PRERELEASE_BLOCK = re.compile(r"^[<>=!^~]*(\d+)\.(\d+)\.(\d+)-[0-9A-Za-z.-]+")


def _normalize_blocks(expression: str) -> list[str]:
    """Split a Cargo requirement into blocks `SimpleSpec` understands.

    Cargo allows whitespace around comparators and reads a bare version as a
    caret requirement, while `SimpleSpec` reads it as an exact match.
    """
    blocks = ["".join(b.split()) for b in expression.split(",")]
    if blocks == [""]:
        return ["*"]
    normalized = []
    for block in blocks:
        core = re.split(r"[-+]", block, maxsplit=1)[0]
        if block[:1].isdigit() and not any(c in core for c in "*xX"):
            block = "^" + block  # noqa: PLW2901
        normalized.append(block)
    return normalized


@BaseSpec.register_syntax
class CargoSpec(SimpleSpec):
    """Cargo-specific version specification."""

    SYNTAX = "cargo"

    class Parser(SimpleSpec.Parser):
        """Parser for Cargo version specifications."""

        @classmethod
        def parse(cls, expression: str) -> CargoSpec:
            """Parse a Cargo version specification."""
            clause = Always()
            for block in _normalize_blocks(expression):
                if not cls.NAIVE_SPEC.match(block):
                    msg = f"Invalid simple block {block!r}"
                    raise ValueError(msg)
                clause &= cls.parse_block(block)

            return clause  # type: ignore[no-any-return]

    def __init__(self, expression: str) -> None:
        """Parse `expression` and remember which releases may opt into pre-releases."""
        super().__init__(expression)
        targets = set()
        for block in _normalize_blocks(expression):
            match = _PRERELEASE_BLOCK.match(block)
            if match:
                major, minor, patch = match.groups()
                targets.add((int(major), int(minor), int(patch)))
        self.prerelease_targets: frozenset[tuple[int, int, int]] = frozenset(targets)

    def match(self, version: Version) -> bool:
        """Check whether `version` satisfies this requirement.

        A pre-release only matches when one of the comparators names a
        pre-release of the same `major.minor.patch`.
        """
        if version.prerelease and (version.major, version.minor, version.patch) not in self.prerelease_targets:
            return False
        return super().match(version)  # type: ignore[no-any-return]

    def __str__(self) -> str:
        """Return string representation of the spec."""
        # remove the whitespace to canonicalize the spec
        return ",".join(b.strip() for b in self.expression.split(","))


def parse_spec(spec: str) -> CargoSpec:
    """Parse a Cargo version specification."""
    return CargoSpec(spec)


def release_from_index_record(line: str) -> CrateRelease:
    """Build a `CrateRelease` from one JSON line of a registry index file.

    Raises:
        ValueError: if the record is not valid JSON or carries an invalid
            name, version, requirement or dependency kind.

    """
    try:
        record = json.loads(line)
        deps = CrateDeps()
        for dep in record.get("deps", ()):
            kind = INDEX_DEPENDENCY_KINDS.get(dep.get("kind"))
            if kind is None:
                msg = f"Unknown dependency kind {dep.get('kind')!r}"
                raise ValueError(msg)
            # renamed dependencies keep the real crate name in `package`
            name = CrateName(dep.get("package") or dep["name"])
            try:
                required = parse_spec(dep.get("req", "*"))
            except ValueError:
                # a requirement we cannot read must not hide the release itself
                logger.debug("Ignoring requirement %r of %s on %s", dep.get("req"), record.get("name"), name)
                continue
            deps.kind(kind).setdefault(name, CrateDep(required=required))
        return CrateRelease(
            name=CrateName(record["name"]),
            version=Version(record["vers"]),
            deps=deps,
            yanked=bool(record.get("yanked", False)),
        )
    except (KeyError, TypeError, AttributeError) as e:
        msg = f"Malformed index record: {line[:80]!r}"
        raise ValueError(msg) from e


def releases_from_index_file(contents: str) -> Iterator[CrateRelease]:
    """Yield the releases of an index file, skipping records that do not parse."""
    for lineno, line in enumerate(contents.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            yield release_from_index_record(line)
        except ValueError as e:
            logger.warning("Skipping index record on line %d: %s", lineno, e)
