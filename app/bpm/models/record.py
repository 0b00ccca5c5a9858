"""Persisted state models: install database and cache index.

Both documents are stored as JSON and ignore unknown fields so that a
newer bpm can add fields without breaking older readers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from bpm.models.package import FileListing
from bpm.models.version import Version

# Schema version written into persisted documents
SCHEMA_VERSION = 1


def _now() -> datetime:
    return datetime.now(UTC)


class Versioning(BaseModel):
    """Update policy of an installed package.

    Attributes:
        pinned_to_version: Updates never move away from the installed version.
        pinned_to_channel: Updates resolve within ``channel``.
        channel: Channel the package was installed from, if any.
    """

    model_config = ConfigDict(extra="ignore")

    pinned_to_version: bool = False
    pinned_to_channel: bool = False
    channel: str | None = None

    @property
    def is_pinned(self) -> bool:
        """Check if any pin is active."""
        return self.pinned_to_version or self.pinned_to_channel


class InstalledPackageRecord(BaseModel):
    """Durable record of one installed package.

    Attributes:
        name: Package name.
        version: Installed version text.
        mount: Mount point name the package was installed into.
        location: Absolute mount point path at install time.
        files: Installed relative paths with their entry description.
        content_hash: SHA-256 of the source artifact (cache key).
        artifact: Artifact file name the package was installed from.
        provider: Provider the artifact came from (None for local files).
        installed_at: Install timestamp.
        versioning: Update policy.
    """

    model_config = ConfigDict(extra="ignore")

    name: Annotated[str, Field(description="Package name")]
    version: Annotated[str, Field(description="Installed version")]
    mount: Annotated[str, Field(description="Mount point name")]
    location: Annotated[str, Field(description="Mount point path at install time")]
    files: Annotated[
        FileListing,
        Field(default_factory=dict, description="Installed file listing"),
    ]
    content_hash: Annotated[str, Field(description="SHA-256 of the source artifact")]
    artifact: Annotated[str, Field(description="Artifact file name")] = ""
    provider: Annotated[str | None, Field(description="Source provider name")] = None
    installed_at: Annotated[datetime, Field(default_factory=_now, description="Install time")]
    versioning: Annotated[
        Versioning,
        Field(default_factory=Versioning, description="Update policy"),
    ]

    @property
    def parsed_version(self) -> Version:
        """Installed version parsed for ordering."""
        return Version.parse(self.version)


class InstallDatabaseDocument(BaseModel):
    """Install database: one record per installed package name.

    Attributes:
        schema_version: Document format version.
        packages: Installed records keyed by package name.
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: int = SCHEMA_VERSION
    packages: Annotated[
        dict[str, InstalledPackageRecord],
        Field(default_factory=dict, description="Installed packages by name"),
    ]

    def get(self, name: str) -> InstalledPackageRecord | None:
        """Get the record of an installed package."""
        return self.packages.get(name)

    def put(self, record: InstalledPackageRecord) -> None:
        """Insert or replace the record of a package."""
        self.packages[record.name] = record

    def remove(self, name: str) -> InstalledPackageRecord | None:
        """Remove and return the record of a package, if present."""
        return self.packages.pop(name, None)

    def content_hashes(self) -> set[str]:
        """Return content hashes of all installed artifacts."""
        return {record.content_hash for record in self.packages.values()}

    def owner_of(self, mount: str, relative: str) -> InstalledPackageRecord | None:
        """Find the package that installed ``relative`` under mount ``mount``."""
        for record in self.packages.values():
            if record.mount == mount and relative in record.files:
                return record
        return None


class CacheEntry(BaseModel):
    """One verified artifact stored in the cache.

    Attributes:
        content_hash: SHA-256 of the artifact bytes (primary key).
        filename: Artifact file name.
        name: Package name.
        version: Package version text.
        provider: Provider of the most recent fetch (None for local files).
        sources: Every provider that has served these exact bytes.
        size: Artifact size in bytes.
        touched: Last access time.
        retention: Per-entry retention override in seconds.
    """

    model_config = ConfigDict(extra="ignore")

    content_hash: str
    filename: str
    name: str
    version: str
    provider: str | None = None
    sources: Annotated[list[str], Field(default_factory=list)]
    size: int = 0
    touched: Annotated[datetime, Field(default_factory=_now)]
    retention: int | None = None

    def is_expired(self, now: datetime, default_retention: int) -> bool:
        """Check if the entry is older than its retention window."""
        retention = self.retention if self.retention is not None else default_retention
        return (now - self.touched).total_seconds() > retention


class CacheIndexDocument(BaseModel):
    """Cache index: entries keyed by content hash.

    Attributes:
        schema_version: Document format version.
        entries: Cache entries keyed by content hash.
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: int = SCHEMA_VERSION
    entries: Annotated[
        dict[str, CacheEntry],
        Field(default_factory=dict, description="Cache entries by content hash"),
    ]

    def find(self, name: str, version: str, provider: str | None) -> CacheEntry | None:
        """Find an entry by its (name, version, provider) identity."""
        for entry in self.entries.values():
            if entry.name != name or entry.version != version:
                continue
            if entry.provider == provider or (provider is not None and provider in entry.sources):
                return entry
        return None

    def matching(self, name: str, version: str | None = None) -> list[CacheEntry]:
        """Return entries for a package, optionally restricted to one version."""
        return [
            entry
            for entry in self.entries.values()
            if entry.name == name and (version is None or entry.version == version)
        ]
