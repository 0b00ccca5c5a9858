"""HTTP(S) provider implementation.

Reads an index document from ``<base>/index.json`` and downloads artifacts
from the locations it lists. The index has the same shape as
:meth:`ScanResult.to_dict`; artifact locations may be absolute URLs or
relative to the base URL. Versions without a location are expected at
``<base>/<name>/<filename>``.
"""

import json
import logging
import threading
from dataclasses import replace
from pathlib import Path

import httpx

from bpm.core.errors import ContractError, NotFoundError, TransportError
from bpm.models.package import artifact_filename
from bpm.models.scan_result import ScanResult
from bpm.models.version import Version
from bpm.providers.base import CHUNK_SIZE, Provider, ProviderKind, check_cancelled

logger = logging.getLogger(__name__)

# Index document served at the provider base URL
INDEX_FILE_NAME = "index.json"

# Default request timeout in seconds
DEFAULT_TIMEOUT = 30.0


class HttpProvider(Provider):
    """Provider reading artifacts from an HTTP(S) server.

    Args:
        name: Configured provider name.
        base_url: Base URL of the package tree.
        client: HTTP client to use; one is created on first use if omitted.
        timeout: Default request timeout in seconds.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        client: httpx.Client | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(name)
        self._base_url = base_url.rstrip("/") + "/"
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._lock = threading.Lock()

    @property
    def kind(self) -> ProviderKind:
        """Return HTTP as the provider kind."""
        return ProviderKind.HTTP

    @property
    def uri(self) -> str:
        """Return the base URL."""
        return self._base_url

    @property
    def client(self) -> httpx.Client:
        """HTTP client, created lazily."""
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(timeout=self._timeout, follow_redirects=True)
            return self._client

    def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        with self._lock:
            if self._client is not None and self._owns_client:
                self._client.close()
                self._client = None

    def _url(self, location: str) -> str:
        return str(httpx.URL(self._base_url).join(location))

    def is_available(self) -> bool:
        """Check if the index document can be reached."""
        try:
            response = self.client.head(self._url(INDEX_FILE_NAME), timeout=self._timeout)
        except httpx.HTTPError as e:
            logger.debug("Provider %s unavailable: %s", self.name, e)
            return False
        return response.is_success

    def scan(self, timeout: float | None = None) -> ScanResult:
        """Download and parse the index document.

        Raises:
            TransportError: If the server cannot be reached or returns an error.
            ContractError: If the index is not valid JSON of the expected shape.
        """
        url = self._url(INDEX_FILE_NAME)
        logger.debug("Provider %s: fetching index %s", self.name, url)
        try:
            response = self.client.get(url, timeout=timeout or self._timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            msg = f"Provider '{self.name}': index request failed with {e.response.status_code}"
            raise TransportError(msg) from e
        except httpx.HTTPError as e:
            msg = f"Provider '{self.name}': cannot reach {url}: {e}"
            raise TransportError(msg) from e

        try:
            listing = ScanResult.from_dict(response.json(), provider=self.name)
        except (json.JSONDecodeError, ValueError) as e:
            msg = f"Provider '{self.name}': malformed index at {url}: {e}"
            raise ContractError(msg) from e

        result = ScanResult()
        for name, info in listing.iter_versions():
            location = info.uri or f"{name}/{info.filename}"
            result.add_version(name, replace(info, uri=self._url(location)))
        result.merge(listing)
        return result

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
        """Stream an artifact to ``dest``, honoring timeout and cancellation."""
        url = self._url(location or f"{name}/{artifact_filename(name, version)}")
        logger.debug("Provider %s: downloading %s", self.name, url)

        written = 0
        try:
            with self.client.stream("GET", url, timeout=timeout or self._timeout) as response:
                if response.status_code == httpx.codes.NOT_FOUND:
                    msg = f"Provider '{self.name}' has no artifact for {name}@{version}"
                    raise NotFoundError(msg)
                response.raise_for_status()
                with dest.open("wb") as out:
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        check_cancelled(cancel, f"download of {name}@{version}")
                        out.write(chunk)
                        written += len(chunk)
        except httpx.HTTPStatusError as e:
            msg = f"Provider '{self.name}': download of {url} failed with {e.response.status_code}"
            raise TransportError(msg) from e
        except httpx.HTTPError as e:
            msg = f"Provider '{self.name}': download of {url} failed: {e}"
            raise TransportError(msg) from e
        except OSError as e:
            msg = f"Provider '{self.name}': cannot write {dest}: {e}"
            raise TransportError(msg) from e
        return written
