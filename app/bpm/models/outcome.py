"""Requests and structured outcomes of install operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from bpm.core.errors import BpmError, FailureKind
from bpm.models.record import InstalledPackageRecord


class OutcomeKind(Enum):
    """Result category of one install, update, or uninstall request."""

    INSTALLED = "installed"
    UPDATED = "updated"
    UP_TO_DATE = "up_to_date"
    NOT_FOUND = "not_found"
    NOT_INSTALLED = "not_installed"
    REMOVED = "removed"
    FAILED = "failed"


class InstallState(Enum):
    """States of the install state machine."""

    REQUESTED = "requested"
    RESOLVED = "resolved"
    STAGED = "staged"
    VERIFIED = "verified"
    INSTALLED = "installed"
    REMOVED = "removed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class InstallRequest:
    """A request to install or update one package.

    Attributes:
        name: Package name.
        selector: Version or channel name (None = greatest available).
        target: Mount point override (None = the artifact's mount point).
        force: Reinstall or downgrade even if not strictly newer.
        path: Local artifact file to install instead of resolving via providers.
    """

    name: str
    selector: str | None = field(default=None)
    target: str | None = field(default=None)
    force: bool = field(default=False)
    path: Path | None = field(default=None)

    def __post_init__(self) -> None:
        """Validate request data after initialization."""
        if not self.name:
            msg = "Package name cannot be empty"
            raise ValueError(msg)

    def __str__(self) -> str:
        if self.selector:
            return f"{self.name}@{self.selector}"
        return self.name


@dataclass(slots=True)
class InstallOutcome:
    """Result of one request.

    Attributes:
        name: Package name the request was about.
        kind: Result category.
        record: Installed record after the operation (install/update/up-to-date).
        previous: Record replaced or removed by the operation.
        failure: Failure category when ``kind`` is FAILED or NOT_FOUND.
        message: Human-readable detail.
        states: States the request passed through, in order.
    """

    name: str
    kind: OutcomeKind
    record: InstalledPackageRecord | None = None
    previous: InstalledPackageRecord | None = None
    failure: FailureKind | None = None
    message: str = ""
    states: list[InstallState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Check if the request did not fail."""
        return self.kind not in (OutcomeKind.FAILED, OutcomeKind.NOT_FOUND)

    @property
    def final_state(self) -> InstallState | None:
        """Last state reached."""
        return self.states[-1] if self.states else None

    @classmethod
    def from_error(
        cls, name: str, error: BpmError, states: list[InstallState] | None = None
    ) -> InstallOutcome:
        """Build a failed outcome from an exception."""
        trace = list(states or [])
        trace.append(InstallState.FAILED)
        kind = OutcomeKind.NOT_FOUND if error.kind == FailureKind.NOT_FOUND else OutcomeKind.FAILED
        return cls(name=name, kind=kind, failure=error.kind, message=str(error), states=trace)


@dataclass(slots=True)
class VerifyReport:
    """Result of checking installed files against their record.

    Attributes:
        name: Package name.
        ok: Paths whose content matches the record.
        missing: Paths that no longer exist.
        modified: Paths whose content or link target changed.
        restored: Paths rewritten from the cached artifact.
    """

    name: str
    ok: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    restored: list[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        """Check if every path is intact (or was restored)."""
        broken = set(self.missing) | set(self.modified)
        return broken <= set(self.restored)
