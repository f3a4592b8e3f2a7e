"""The `crate-freshness` APIs."""

__version__ = "0.1.0"

from .analyzer import DependencyAnalyzer, analyze_dependencies
from .audit import OSVProject, OSVVulnerability, VulnerabilityProvider
from .cargo import CargoSpec, parse_spec, release_from_index_record
from .config import Settings
from .index import CrateIndex, IndexSnapshot, IndexUpdateError, ManagedIndex, crate_path
from .models import (
    DEPENDENCY_KINDS,
    AnalyzedDependencies,
    AnalyzedDependency,
    CrateDep,
    CrateDeps,
    CrateName,
    CrateRelease,
    Vulnerability,
)

__all__ = [
    "DEPENDENCY_KINDS",
    "AnalyzedDependencies",
    "AnalyzedDependency",
    "CargoSpec",
    "CrateDep",
    "CrateDeps",
    "CrateIndex",
    "CrateName",
    "CrateRelease",
    "DependencyAnalyzer",
    "IndexSnapshot",
    "IndexUpdateError",
    "ManagedIndex",
    "OSVProject",
    "OSVVulnerability",
    "Settings",
    "Vulnerability",
    "VulnerabilityProvider",
    "analyze_dependencies",
    "crate_path",
    "parse_spec",
    "release_from_index_record",
]
