"""Channel definitions and effective-version resolution.

A channel is a named subset of a package's versions. Channels come from a
``channels.json`` document or from ``channel_<name>/`` directories; both
forms are recorded the same way in a ScanResult, so resolution does not
depend on where a channel was declared.
"""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from bpm.core.errors import ChannelNotFoundError, ContractError, NotFoundError
from bpm.models.scan_result import PackageInfo
from bpm.models.version import Version

logger = logging.getLogger(__name__)

# File declaring channels inside a package directory
CHANNELS_FILE_NAME = "channels.json"

# Directory name prefix declaring a channel inside a package directory
CHANNEL_DIR_PREFIX = "channel_"


def channel_from_dir_name(dirname: str) -> str | None:
    """Return the channel name of a ``channel_<name>`` directory, or None."""
    if dirname.startswith(CHANNEL_DIR_PREFIX) and len(dirname) > len(CHANNEL_DIR_PREFIX):
        return dirname[len(CHANNEL_DIR_PREFIX) :]
    return None


def parse_channels_document(data: Any, source: str = CHANNELS_FILE_NAME) -> dict[str, list[str]]:
    """Validate a decoded channels document.

    Args:
        data: Decoded JSON value.
        source: Description of where the document came from, for messages.

    Returns:
        Mapping of channel name to listed version strings.

    Raises:
        ContractError: If the document is not a mapping of names to string lists.
    """
    if not isinstance(data, dict):
        msg = f"{source}: expected a mapping of channel names to version lists"
        raise ContractError(msg)

    channels: dict[str, list[str]] = {}
    for name, versions in data.items():
        if not isinstance(versions, list) or not all(isinstance(v, str) for v in versions):
            msg = f"{source}: channel '{name}' must be a list of version strings"
            raise ContractError(msg)
        channels[str(name)] = [v.strip() for v in versions]
    return channels


def parse_channels_file(path: Path) -> dict[str, list[str]]:
    """Read and validate a ``channels.json`` file.

    Raises:
        ContractError: If the file cannot be read, is not valid JSON, or has the
            wrong shape.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        msg = f"Malformed channels file {path}: {e}"
        raise ContractError(msg) from e
    return parse_channels_document(data, source=str(path))


def effective_version(versions: Iterable[Version]) -> Version | None:
    """Return the greatest of a channel's versions.

    This is a pure function of the version set: the order in which
    versions are listed never matters.
    """
    best: Version | None = None
    for version in versions:
        if best is None or version > best:
            best = version
    return best


def resolve_channel(package: PackageInfo, channel: str) -> Version:
    """Resolve a channel to the greatest listed version that is available.

    Listed versions that no provider currently offers are ignored.

    Args:
        package: Availability of the package.
        channel: Channel name.

    Returns:
        Effective version of the channel.

    Raises:
        ChannelNotFoundError: If the package declares no such channel.
        NotFoundError: If none of the channel's versions is available.
    """
    members = package.channels.get(channel)
    if members is None:
        raise ChannelNotFoundError(package.name, channel)

    candidates = [Version.parse(raw) for raw in members if raw in package.versions]
    skipped = len(members) - len(candidates)
    if skipped:
        logger.debug(
            "Channel %s of %s lists %d unavailable version(s)", channel, package.name, skipped
        )

    best = effective_version(candidates)
    if best is None:
        msg = f"No available version of '{package.name}' in channel '{channel}'"
        raise NotFoundError(msg)
    return best
