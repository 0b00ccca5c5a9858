"""Package providers for different source kinds.

This module exports the provider classes and a factory that builds a
provider from its configured location.
"""

from pathlib import Path

import httpx

from bpm.core.errors import ConfigError
from bpm.providers.base import Provider, ProviderKind
from bpm.providers.filesystem import FilesystemProvider
from bpm.providers.http import DEFAULT_TIMEOUT, HttpProvider

__all__ = [
    "FilesystemProvider",
    "HttpProvider",
    "Provider",
    "ProviderKind",
    "create_provider",
]

_FS_SCHEME = "fs://"
_HTTP_SCHEMES = ("http://", "https://")


def create_provider(
    name: str,
    uri: str,
    client: httpx.Client | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Provider:
    """Create a provider from a configured location.

    Accepted locations are ``fs:///abs/path``, ``/abs/path`` and
    ``http(s)://host/path``.

    Args:
        name: Provider name.
        uri: Configured location.
        client: HTTP client shared by network providers.
        timeout: Default network timeout in seconds.

    Raises:
        ConfigError: If the location scheme is unsupported or the path is relative.
    """
    if uri.startswith(_HTTP_SCHEMES):
        return HttpProvider(name, uri, client=client, timeout=timeout)

    raw_path = uri.removeprefix(_FS_SCHEME)
    path = Path(raw_path).expanduser()
    if "://" in raw_path or not path.is_absolute():
        msg = f"Provider '{name}': unsupported location '{uri}'"
        raise ConfigError(msg)
    return FilesystemProvider(name, path)
