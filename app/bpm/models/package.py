"""Package naming and artifact manifest models.

This module defines the data structures that describe a package artifact:
its file name convention and the ``meta.json`` manifest stored inside it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
)

from bpm.models.version import Version

# File extension of package artifacts (without the dot)
PKG_EXTENSION = "bpm"

# Canonical separator between name and version in artifact file names
CANONICAL_SEPARATOR = "_"

# Separators accepted when reading existing trees, in order of preference
ACCEPTED_SEPARATORS = ("_", "-")


def is_package_name(name: str) -> bool:
    """Check if a string is a valid package name.

    A valid name is non-empty, does not start with a dot, and contains no
    path separators and no canonical name/version separator.
    """
    if not name or name.startswith("."):
        return False
    return not any(ch in name for ch in ("/", "\\", CANONICAL_SEPARATOR))


def split_parts(filename: str) -> tuple[str, str] | None:
    """Split an artifact file name into package name and version.

    Both ``<name>_<version>.bpm`` and ``<name>-<version>.bpm`` are accepted;
    the underscore form wins when both separators appear.

    Args:
        filename: Artifact file name (not a path).

    Returns:
        Tuple of (name, version), or None if the name does not follow
        either convention.
    """
    suffix = f".{PKG_EXTENSION}"
    if not filename.endswith(suffix):
        return None
    stem = filename[: -len(suffix)]

    for sep in ACCEPTED_SEPARATORS:
        name, found, version = stem.partition(sep)
        if found and name and version and is_package_name(name):
            return name, version
    return None


def artifact_filename(name: str, version: str | Version) -> str:
    """Build the canonical artifact file name for a package version."""
    return f"{name}{CANONICAL_SEPARATOR}{version}.{PKG_EXTENSION}"


@dataclass(frozen=True, slots=True)
class PackageId:
    """Identifies one version of a package.

    Attributes:
        name: Package name.
        version: Package version.
    """

    name: str
    version: Version

    def __post_init__(self) -> None:
        """Validate package identity after initialization."""
        if not is_package_name(self.name):
            msg = f"Invalid package name: '{self.name}'"
            raise ValueError(msg)
        if not self.version.raw:
            msg = f"Package version cannot be empty for '{self.name}'"
            raise ValueError(msg)

    @classmethod
    def from_filename(cls, filename: str) -> PackageId | None:
        """Create a PackageId from an artifact file name, or None if it does not parse."""
        parts = split_parts(filename)
        if parts is None:
            return None
        return cls(name=parts[0], version=Version.parse(parts[1]))

    @property
    def filename(self) -> str:
        """Canonical artifact file name."""
        return artifact_filename(self.name, self.version)

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


class FileType(str, Enum):
    """Kind of entry in an artifact's file listing."""

    FILE = "f"
    DIR = "d"
    SYMLINK = "s"


class FileInfo(BaseModel):
    """Description of one entry installed by a package.

    Serialized in ``meta.json`` as a compact attribute string:
    ``f:<hash>`` for files, ``d`` for directories and
    ``s:<target>`` or ``s:<target>:<hash>`` for symlinks.

    Attributes:
        type: Entry kind.
        hash: SHA-256 hex digest of the file content (files and resolved symlinks).
        target: Link target (symlinks only).
    """

    model_config = ConfigDict(frozen=True)

    type: FileType
    hash: str | None = None
    target: str | None = None

    @classmethod
    def parse(cls, attr: str) -> FileInfo:
        """Parse an attribute string into a FileInfo.

        Raises:
            ValueError: If the attribute string is malformed.
        """
        kind, _, rest = attr.partition(":")
        if kind == FileType.DIR.value and not rest:
            return cls(type=FileType.DIR)
        if kind == FileType.FILE.value and rest:
            return cls(type=FileType.FILE, hash=rest)
        if kind == FileType.SYMLINK.value and rest:
            target, _, digest = rest.partition(":")
            if target:
                return cls(type=FileType.SYMLINK, target=target, hash=digest or None)
        msg = f"Invalid file attribute: '{attr}'"
        raise ValueError(msg)

    def to_attr(self) -> str:
        """Serialize to the compact attribute string."""
        if self.type == FileType.DIR:
            return "d"
        if self.type == FileType.FILE:
            return f"f:{self.hash}"
        if self.hash:
            return f"s:{self.target}:{self.hash}"
        return f"s:{self.target}"

    @property
    def is_dir(self) -> bool:
        """Check if this entry is a directory."""
        return self.type == FileType.DIR

    @property
    def is_file(self) -> bool:
        """Check if this entry is a regular file."""
        return self.type == FileType.FILE

    @property
    def is_symlink(self) -> bool:
        """Check if this entry is a symbolic link."""
        return self.type == FileType.SYMLINK


def _parse_listing(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    return {
        path: FileInfo.parse(attr) if isinstance(attr, str) else attr
        for path, attr in value.items()
    }


def _dump_listing(files: dict[str, FileInfo]) -> dict[str, str]:
    return {path: info.to_attr() for path, info in files.items()}


# Path to entry mapping, stored as compact attribute strings
FileListing = Annotated[
    dict[str, FileInfo],
    BeforeValidator(_parse_listing),
    PlainSerializer(_dump_listing),
]


class PackageMeta(BaseModel):
    """Manifest stored as ``meta.json`` inside an artifact.

    Unknown keys are ignored so that newer artifacts remain readable.

    Attributes:
        name: Package name.
        version: Version string as published.
        mount: Mount point name the package installs into (None = default target).
        data_hash: SHA-256 hex digest of the compressed payload member.
        dependencies: Declared dependencies (informational only).
        files: Relative path to entry description.
    """

    model_config = ConfigDict(extra="ignore")

    name: Annotated[str, Field(description="Package name")]
    version: Annotated[str, Field(description="Package version")]
    mount: Annotated[str | None, Field(description="Target mount point name")] = None
    data_hash: Annotated[str, Field(description="SHA-256 of the payload member")]
    dependencies: Annotated[
        dict[str, str],
        Field(default_factory=dict, description="Declared dependencies"),
    ]
    files: Annotated[
        FileListing,
        Field(default_factory=dict, description="Installed file listing"),
    ]

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        """Validate the package name."""
        if not is_package_name(value):
            msg = f"Invalid package name: '{value}'"
            raise ValueError(msg)
        return value

    @property
    def parsed_version(self) -> Version:
        """Version parsed for ordering."""
        return Version.parse(self.version)

    @property
    def package_id(self) -> PackageId:
        """Identity of the packaged version."""
        return PackageId(name=self.name, version=self.parsed_version)

    def mount_or(self, default: str) -> str:
        """Return the declared mount point, or ``default`` if none is declared."""
        return self.mount or default
