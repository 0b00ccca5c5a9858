"""Data models for bpm.

This module exports the core data structures used throughout the application.
"""

from bpm.models.outcome import (
    InstallOutcome,
    InstallRequest,
    InstallState,
    OutcomeKind,
    VerifyReport,
)
from bpm.models.package import (
    FileInfo,
    FileType,
    PackageId,
    PackageMeta,
    artifact_filename,
    is_package_name,
    split_parts,
)
from bpm.models.record import (
    CacheEntry,
    CacheIndexDocument,
    InstallDatabaseDocument,
    InstalledPackageRecord,
    Versioning,
)
from bpm.models.scan_result import PackageInfo, ScanResult, VersionInfo
from bpm.models.version import Ordering, Version, compare

__all__ = [
    "CacheEntry",
    "CacheIndexDocument",
    "FileInfo",
    "FileType",
    "InstallDatabaseDocument",
    "InstallOutcome",
    "InstallRequest",
    "InstallState",
    "InstalledPackageRecord",
    "Ordering",
    "OutcomeKind",
    "PackageId",
    "PackageInfo",
    "PackageMeta",
    "ScanResult",
    "Version",
    "VersionInfo",
    "VerifyReport",
    "Versioning",
    "artifact_filename",
    "compare",
    "is_package_name",
    "split_parts",
]
