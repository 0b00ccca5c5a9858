"""Exception hierarchy for bpm.

Components raise these; the install orchestrator converts them into
structured outcomes so that a batch operation can continue past a single
failing request.
"""

from enum import Enum


class FailureKind(str, Enum):
    """Category of a failed operation.

    Attributes:
        TRANSPORT: Provider unreachable, timeout, or local IO failure.
        NOT_FOUND: Package, version, channel, or artifact does not exist.
        INTEGRITY: Artifact bytes do not match their declared hash.
        CONTRACT: Configuration or artifact violates an expected contract.
        CANCELLED: Operation was cancelled by the caller.
    """

    TRANSPORT = "transport"
    NOT_FOUND = "not_found"
    INTEGRITY = "integrity"
    CONTRACT = "contract"
    CANCELLED = "cancelled"


class BpmError(Exception):
    """Base exception for bpm errors."""

    kind: FailureKind = FailureKind.CONTRACT


class TransportError(BpmError):
    """Raised when a provider or the local filesystem fails to deliver data."""

    kind = FailureKind.TRANSPORT


class NotFoundError(BpmError):
    """Raised when a package, version, or artifact is not available."""

    kind = FailureKind.NOT_FOUND


class ChannelNotFoundError(NotFoundError):
    """Raised when a requested channel is not declared for a package."""

    def __init__(self, package: str, channel: str) -> None:
        super().__init__(f"Channel '{channel}' not found for package '{package}'")
        self.package = package
        self.channel = channel


class IntegrityError(BpmError):
    """Raised when artifact bytes fail hash verification."""

    kind = FailureKind.INTEGRITY


class ContractError(BpmError):
    """Raised on malformed artifacts, channel files, or undeclared mount points."""

    kind = FailureKind.CONTRACT


class CancelledError(BpmError):
    """Raised when a fetch or scan is cancelled before completion."""

    kind = FailureKind.CANCELLED


class DatabaseError(BpmError):
    """Raised when the install database cannot be read or written.

    A corrupt database is unrecoverable: callers should stop instead of
    converting this into a per-request outcome.
    """


class LockTimeoutError(BpmError):
    """Raised when an exclusive lock cannot be acquired in time."""

    kind = FailureKind.TRANSPORT


class ConfigError(BpmError):
    """Base exception for configuration errors."""


class ConfigNotFoundError(ConfigError):
    """Raised when the configuration file is not found."""


class ConfigParseError(ConfigError):
    """Raised when the configuration file cannot be parsed."""
