"""Resolution of install requests to concrete package versions."""

import logging
from dataclasses import dataclass

from bpm.core.channels import resolve_channel
from bpm.core.errors import ContractError, NotFoundError
from bpm.models.package import is_package_name
from bpm.models.record import Versioning
from bpm.models.scan_result import ScanResult, VersionInfo

logger = logging.getLogger(__name__)

# Separators between package name and selector in request strings
_SELECTOR_SEPARATORS = ("@", "=")


@dataclass(frozen=True, slots=True)
class ResolvedPackage:
    """A request resolved against availability.

    Attributes:
        name: Package name.
        info: Selected version with its provenance.
        channel: Channel the version was selected through, if any.
        explicit: Whether the request named an exact version.
    """

    name: str
    info: VersionInfo
    channel: str | None = None
    explicit: bool = False

    @property
    def versioning(self) -> Versioning:
        """Update policy implied by how the version was selected."""
        return Versioning(
            pinned_to_version=self.explicit,
            pinned_to_channel=self.channel is not None,
            channel=self.channel,
        )


def parse_request(text: str) -> tuple[str, str | None]:
    """Split a request string into package name and selector.

    Accepts ``name``, ``name@selector`` and ``name=selector``; the selector
    names a version or a channel.

    Raises:
        ContractError: If the package name is invalid or the selector is empty.

    Example:
        >>> parse_request("foo@stable")
        ('foo', 'stable')
    """
    text = text.strip()
    name, selector = text, None
    for sep in _SELECTOR_SEPARATORS:
        if sep in text:
            name, _, raw = text.partition(sep)
            selector = raw.strip()
            if not selector:
                msg = f"Empty version or channel in request '{text}'"
                raise ContractError(msg)
            break

    if not is_package_name(name):
        msg = f"Invalid package name: '{name}'"
        raise ContractError(msg)
    return name, selector


def resolve(scan: ScanResult, name: str, selector: str | None = None) -> ResolvedPackage:
    """Resolve a package name and optional selector to an available version.

    A selector is first tried as a channel name, then as an exact version.
    Without a selector the greatest available version is chosen.

    Raises:
        NotFoundError: If the package, version, or channel is not available.
    """
    package = scan.get(name)
    latest = package.latest() if package is not None else None
    if package is None or latest is None:
        msg = f"Package '{name}' not found"
        raise NotFoundError(msg)

    if selector is None:
        info = latest
        logger.debug("Resolved %s to latest %s", name, info.version)
        return ResolvedPackage(name=name, info=info)

    if selector in package.channels:
        version = resolve_channel(package, selector)
        logger.debug("Resolved %s@%s to %s", name, selector, version)
        return ResolvedPackage(name=name, info=package.versions[version.raw], channel=selector)

    info = package.versions.get(selector)
    if info is not None:
        return ResolvedPackage(name=name, info=info, explicit=True)

    msg = f"No version or channel '{selector}' for package '{name}'"
    raise NotFoundError(msg)


def resolve_in_channel(scan: ScanResult, name: str, channel: str) -> ResolvedPackage:
    """Resolve a package strictly within a channel.

    Raises:
        ChannelNotFoundError: If the package no longer declares the channel.
        NotFoundError: If the package or any channel version is unavailable.
    """
    package = scan.get(name)
    if package is None:
        msg = f"Package '{name}' not found"
        raise NotFoundError(msg)
    version = resolve_channel(package, channel)
    return ResolvedPackage(name=name, info=package.versions[version.raw], channel=channel)
