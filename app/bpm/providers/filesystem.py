"""Filesystem provider implementation.

Lists and copies artifacts stored under a local directory tree. Two
layouts are accepted, and may be mixed under one root:

- flat: ``<root>/<name>_<version>.bpm``
- named: ``<root>/<name>/<name>_<version>.bpm`` with optional
  ``<root>/<name>/channel_<id>/<name>_<version>.bpm`` directories and an
  optional ``<root>/<name>/channels.json`` file.
"""

import logging
import shutil
import threading
from pathlib import Path

from bpm.core.channels import CHANNELS_FILE_NAME, channel_from_dir_name, parse_channels_file
from bpm.core.errors import NotFoundError, TransportError
from bpm.models.package import ACCEPTED_SEPARATORS, PKG_EXTENSION, is_package_name, split_parts
from bpm.models.scan_result import ScanResult, VersionInfo
from bpm.models.version import Version
from bpm.providers.base import CHUNK_SIZE, Provider, ProviderKind, check_cancelled

logger = logging.getLogger(__name__)


def _sorted_entries(directory: Path) -> list[Path]:
    return sorted(directory.iterdir(), key=lambda p: p.name)


def _is_artifact(path: Path) -> bool:
    return path.suffix == f".{PKG_EXTENSION}" and path.is_file()


class FilesystemProvider(Provider):
    """Provider reading artifacts from a local directory.

    Example:
        >>> provider = FilesystemProvider("local", Path("/srv/packages"))
        >>> provider.scan().names()
        ['foo']
    """

    def __init__(self, name: str, root: Path) -> None:
        super().__init__(name)
        self._root = root

    @property
    def kind(self) -> ProviderKind:
        """Return FILESYSTEM as the provider kind."""
        return ProviderKind.FILESYSTEM

    @property
    def uri(self) -> str:
        """Return the root directory as an fs:// URI."""
        return f"fs://{self._root}"

    @property
    def root(self) -> Path:
        """Root directory of the tree."""
        return self._root

    def is_available(self) -> bool:
        """Check if the root directory exists."""
        return self._root.is_dir()

    def scan(self, timeout: float | None = None) -> ScanResult:
        """Walk the tree and list available artifacts.

        Artifacts with names that do not parse are skipped. An artifact in
        a package directory whose name belongs to another package is
        skipped with a warning.

        Raises:
            TransportError: If the root directory cannot be read.
            ContractError: If a ``channels.json`` file is malformed.
        """
        result = ScanResult()
        if not self._root.is_dir():
            msg = f"Provider '{self.name}': {self._root} is not a directory"
            raise TransportError(msg)

        try:
            for entry in _sorted_entries(self._root):
                if entry.is_dir():
                    if is_package_name(entry.name):
                        self._scan_package_dir(entry, result)
                elif _is_artifact(entry):
                    self._add_artifact(entry, result)
        except OSError as e:
            msg = f"Provider '{self.name}': failed to read {self._root}: {e}"
            raise TransportError(msg) from e

        logger.debug("Provider %s: found %d package(s)", self.name, len(result))
        return result

    def _scan_package_dir(self, pkg_dir: Path, result: ScanResult) -> None:
        pkg_name = pkg_dir.name
        channel_dirs: list[tuple[str, Path]] = []

        for entry in _sorted_entries(pkg_dir):
            if entry.is_dir():
                channel = channel_from_dir_name(entry.name)
                if channel is not None:
                    channel_dirs.append((channel, entry))
            elif _is_artifact(entry):
                self._add_artifact(entry, result, expected=pkg_name)

        for channel, channel_dir in channel_dirs:
            for entry in _sorted_entries(channel_dir):
                if not _is_artifact(entry):
                    continue
                version = self._add_artifact(entry, result, expected=pkg_name)
                if version is not None:
                    result.declare_channel(pkg_name, channel, [version.raw])

        channels_file = pkg_dir / CHANNELS_FILE_NAME
        if channels_file.is_file():
            for channel, versions in parse_channels_file(channels_file).items():
                result.declare_channel(pkg_name, channel, versions)

    def _add_artifact(
        self, path: Path, result: ScanResult, expected: str | None = None
    ) -> Version | None:
        parts = split_parts(path.name)
        if parts is None:
            logger.debug("Provider %s: skipping unrecognized file %s", self.name, path)
            return None

        name, raw_version = parts
        if expected is not None and name != expected:
            logger.warning("Provider %s: found package in wrong directory: %s", self.name, path)
            return None

        version = Version.parse(raw_version)
        result.add_version(
            name,
            VersionInfo(version=version, provider=self.name, filename=path.name, uri=str(path)),
        )
        return version

    def _candidates(self, name: str, version: Version) -> list[Path]:
        filenames = [f"{name}{sep}{version.raw}.{PKG_EXTENSION}" for sep in ACCEPTED_SEPARATORS]
        dirs = [self._root, self._root / name]
        pkg_dir = self._root / name
        if pkg_dir.is_dir():
            dirs.extend(
                p for p in _sorted_entries(pkg_dir) if p.is_dir() and channel_from_dir_name(p.name)
            )
        return [d / f for d in dirs for f in filenames]

    def locate(self, name: str, version: Version, location: str | None = None) -> Path:
        """Find the artifact file for a package version.

        Raises:
            NotFoundError: If no matching artifact exists under the root.
        """
        if location:
            path = Path(location)
            if path.is_file() and path.resolve().is_relative_to(self._root.resolve()):
                return path

        for candidate in self._candidates(name, version):
            if candidate.is_file():
                return candidate

        msg = f"Provider '{self.name}' has no artifact for {name}@{version}"
        raise NotFoundError(msg)

    def fetch(
        self,
        name: str,
        version: Version,
        dest: Path,
        *,
        location: str | None = None,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Copy an artifact to ``dest`` in chunks, honoring cancellation."""
        source = self.locate(name, version, location)
        logger.debug("Provider %s: copying %s", self.name, source)

        written = 0
        try:
            with source.open("rb") as src, dest.open("wb") as out:
                while chunk := src.read(CHUNK_SIZE):
                    check_cancelled(cancel, f"fetch of {name}@{version}")
                    out.write(chunk)
                    written += len(chunk)
        except OSError as e:
            msg = f"Provider '{self.name}': failed to copy {source}: {e}"
            raise TransportError(msg) from e
        shutil.copystat(source, dest, follow_symlinks=True)
        return written
