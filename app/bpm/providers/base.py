"""Abstract base class for package providers.

This module defines the Provider interface that all artifact sources
must implement.
"""

import threading
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from bpm.core.errors import CancelledError
from bpm.models.scan_result import ScanResult
from bpm.models.version import Version

# Size of chunks copied while fetching artifacts
CHUNK_SIZE = 64 * 1024


class ProviderKind(Enum):
    """Enumeration of supported provider kinds."""

    FILESYSTEM = "fs"
    HTTP = "http"


class Provider(ABC):
    """Abstract base class for all providers.

    Providers list the package versions available at one location and
    fetch the bytes of a single artifact. They hold no state between
    scans.

    Example:
        >>> provider = FilesystemProvider("local", Path("/srv/packages"))
        >>> if provider.is_available():
        ...     result = provider.scan()
        ...     print(result.names())
    """

    def __init__(self, name: str) -> None:
        if not name:
            msg = "Provider name cannot be empty"
            raise ValueError(msg)
        self._name = name

    @property
    def name(self) -> str:
        """Configured provider name."""
        return self._name

    @property
    @abstractmethod
    def kind(self) -> ProviderKind:
        """Return the kind of this provider."""

    @property
    @abstractmethod
    def uri(self) -> str:
        """Return the location this provider reads from."""

    @abstractmethod
    def scan(self, timeout: float | None = None) -> ScanResult:
        """List the package versions available from this provider.

        Args:
            timeout: Maximum seconds to wait for a network listing.

        Returns:
            ScanResult with this provider recorded as provenance.

        Raises:
            TransportError: If the location cannot be read.
            ContractError: If a listing document is malformed.
        """

    @abstractmethod
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
        """Write the bytes of one artifact to ``dest``.

        Args:
            name: Package name.
            version: Package version.
            dest: File to write; created or truncated.
            location: Location reported by :meth:`scan`, if known.
            timeout: Maximum seconds to wait on the network.
            cancel: Event that aborts the transfer when set.

        Returns:
            Number of bytes written.

        Raises:
            NotFoundError: If the provider has no such artifact.
            TransportError: If the transfer fails.
            CancelledError: If ``cancel`` was set during the transfer.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider's location can currently be used."""

    def close(self) -> None:
        """Release resources held by the provider."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, uri={self.uri!r})"


def check_cancelled(cancel: threading.Event | None, what: str) -> None:
    """Raise CancelledError if ``cancel`` is set."""
    if cancel is not None and cancel.is_set():
        msg = f"Cancelled: {what}"
        raise CancelledError(msg)
