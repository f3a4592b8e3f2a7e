"""Vulnerability advisory providers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from requests import post

from .config import DEFAULT_OSV_URL
from .models import Vulnerability

if TYPE_CHECKING:
    from collections.abc import Iterable

    from semantic_version import Version

    from .config import Settings
    from .models import CrateName

logger = logging.getLogger(__name__)

OSV_ECOSYSTEM = "crates.io"


class OSVVulnerability(Vulnerability):
    """Represents a vulnerability from the OSV project."""

    """Additional keys available from the OSV Vulnerability db."""
    EXTRA_KEYS: ClassVar[list[str]] = [
        "published",
        "modified",
        "withdrawn",
        "related",
        "details",
        "affected",
        "references",
        "severity",
        "database_specific",
    ]

    def __init__(self, osv_dict: dict) -> None:
        """Initialize OSV vulnerability from dictionary."""
        # Get the first available information as summary (N/A if none)
        summary = osv_dict.get("summary", "") or osv_dict.get("details", "") or "N/A"
        super().__init__(osv_dict["id"], osv_dict.get("aliases", []), summary)

        for k in OSVVulnerability.EXTRA_KEYS:
            setattr(self, k, osv_dict.get(k))

    @classmethod
    def from_osv_dict(cls, d: dict) -> OSVVulnerability:
        """Create OSV vulnerability from dictionary."""
        return OSVVulnerability(d)


class VulnerabilityProvider(ABC):
    """Interface of an advisory source."""

    @abstractmethod
    def query(self, name: CrateName, version: Version) -> Iterable[Vulnerability]:
        """Return the advisories affecting exactly `version` of crate `name`."""
        raise NotImplementedError


class OSVProject(VulnerabilityProvider):
    """OSV project vulnerability provider for crates.io packages."""

    def __init__(self, query_url: str = DEFAULT_OSV_URL, timeout: float = 30.0) -> None:
        self.query_url = query_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> OSVProject | None:
        """Build a provider from settings, or None if auditing is disabled."""
        if not settings.audit:
            return None
        return cls(query_url=settings.osv_url, timeout=settings.osv_timeout)

    def query(self, name: CrateName, version: Version) -> list[OSVVulnerability]:
        """Query the OSV project for vulnerabilities in one crate release."""
        q = {"version": str(version), "package": {"name": str(name), "ecosystem": OSV_ECOSYSTEM}}
        r = post(self.query_url, json=q, timeout=self.timeout)
        r.raise_for_status()
        vulns = [OSVVulnerability.from_osv_dict(v) for v in r.json().get("vulns", [])]
        logger.debug("OSV reported %d advisories for %s@%s", len(vulns), name, version)
        return vulns
