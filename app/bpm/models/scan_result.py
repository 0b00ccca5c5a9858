"""Availability index produced by scanning providers.

This module defines the data structures that record which package
versions are available, which provider each came from, and which
channels declare them.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from bpm.models.package import artifact_filename, is_package_name
from bpm.models.version import Version


@dataclass(frozen=True, slots=True)
class VersionInfo:
    """One available version of a package and where it came from.

    Attributes:
        version: Parsed version.
        provider: Name of the provider that reported this version.
        filename: Artifact file name as published.
        uri: Provider-specific location of the artifact (path or URL).
    """

    version: Version
    provider: str
    filename: str
    uri: str | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {"filename": self.filename}
        if self.uri is not None:
            data["uri"] = self.uri
        return data


@dataclass(slots=True)
class PackageInfo:
    """Availability of a single package.

    Attributes:
        name: Package name.
        versions: Available versions keyed by raw version text.
        channels: Channel name to the set of raw version strings it lists.
    """

    name: str
    versions: dict[str, VersionInfo] = field(default_factory=dict)
    channels: dict[str, set[str]] = field(default_factory=dict)

    def available(self) -> list[Version]:
        """Return available versions in ascending order."""
        return sorted(info.version for info in self.versions.values())

    def latest(self) -> VersionInfo | None:
        """Return the greatest available version, or None if none is available."""
        if not self.versions:
            return None
        best = max(info.version for info in self.versions.values())
        return self.versions[best.raw]

    def channels_of(self, version: Version) -> tuple[str, ...]:
        """Return the names of channels listing a version, sorted."""
        return tuple(sorted(ch for ch, members in self.channels.items() if version.raw in members))


class ScanResult:
    """Consolidated availability index across providers.

    Versions are kept first-come: once a (name, version) pair is recorded,
    later reports of the same pair do not change its provenance. Callers
    merge results in provider priority order to get deterministic output.
    """

    def __init__(self) -> None:
        self._packages: dict[str, PackageInfo] = {}

    def _entry(self, name: str) -> PackageInfo:
        info = self._packages.get(name)
        if info is None:
            info = PackageInfo(name=name)
            self._packages[name] = info
        return info

    def add_version(self, name: str, info: VersionInfo) -> bool:
        """Record an available version.

        Returns:
            True if the version was added, False if it was already known.
        """
        entry = self._entry(name)
        if info.version.raw in entry.versions:
            return False
        entry.versions[info.version.raw] = info
        return True

    def declare_channel(self, name: str, channel: str, versions: Iterable[str]) -> None:
        """Add versions to a package's channel declaration."""
        members = self._entry(name).channels.setdefault(channel, set())
        members.update(v.strip() for v in versions)

    def merge(self, other: ScanResult) -> None:
        """Merge a lower-priority result into this one.

        Availability becomes the union of both results; provenance of
        versions already present here is kept.
        """
        for name, pkg in other._packages.items():
            for info in pkg.versions.values():
                self.add_version(name, info)
            for channel, members in pkg.channels.items():
                self.declare_channel(name, channel, members)

    def get(self, name: str) -> PackageInfo | None:
        """Get availability of a package by name."""
        return self._packages.get(name)

    def names(self) -> list[str]:
        """Return all package names, sorted."""
        return sorted(self._packages)

    def search(self, needle: str) -> list[PackageInfo]:
        """Return packages whose name contains ``needle``, sorted by name."""
        needle = needle.lower()
        return [self._packages[n] for n in self.names() if needle in n.lower()]

    def iter_versions(self) -> Iterator[tuple[str, VersionInfo]]:
        """Iterate (name, version info) pairs in name then version order."""
        for name in self.names():
            pkg = self._packages[name]
            for version in pkg.available():
                yield name, pkg.versions[version.raw]

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        The format is the same one accepted by :meth:`from_dict` and served
        by HTTP providers as their index document.
        """
        packages: dict[str, Any] = {}
        for name in self.names():
            pkg = self._packages[name]
            packages[name] = {
                "versions": {
                    v.raw: pkg.versions[v.raw].to_dict() for v in pkg.available()
                },
                "channels": {ch: sorted(pkg.channels[ch]) for ch in sorted(pkg.channels)},
            }
        return {"packages": packages}

    @classmethod
    def from_dict(cls, data: dict[str, Any], provider: str) -> ScanResult:
        """Build a ScanResult from its dictionary form.

        Args:
            data: Dictionary with a ``packages`` mapping.
            provider: Provider name recorded as provenance of every version.

        Raises:
            ValueError: If the document does not have the expected shape.
        """
        packages = data.get("packages") if isinstance(data, dict) else None
        if not isinstance(packages, dict):
            msg = "Index document must contain a 'packages' mapping"
            raise ValueError(msg)

        result = cls()
        for name, body in packages.items():
            if not is_package_name(name):
                msg = f"Invalid package name in index: {name!r}"
                raise ValueError(msg)
            if not isinstance(body, dict):
                msg = f"Invalid index entry for package '{name}'"
                raise ValueError(msg)

            versions = body.get("versions", {})
            if isinstance(versions, list):
                versions = {str(v): {} for v in versions}
            if not isinstance(versions, dict):
                msg = f"Invalid version listing for package '{name}'"
                raise ValueError(msg)

            for raw, details in versions.items():
                details = details if isinstance(details, dict) else {}
                version = Version.parse(str(raw))
                filename = details.get("filename") or artifact_filename(name, version)
                uri = details.get("uri")
                if not isinstance(filename, str) or not (uri is None or isinstance(uri, str)):
                    msg = f"Invalid filename or uri for {name} {raw}"
                    raise ValueError(msg)
                result.add_version(
                    name,
                    VersionInfo(version=version, provider=provider, filename=filename, uri=uri),
                )

            channels = body.get("channels", {})
            if not isinstance(channels, dict):
                msg = f"Invalid channel listing for package '{name}'"
                raise ValueError(msg)
            for channel, members in channels.items():
                if not isinstance(members, list):
                    msg = f"Channel '{channel}' of package '{name}' must list versions"
                    raise ValueError(msg)
                result.declare_channel(name, channel, (str(m) for m in members))

        return result
