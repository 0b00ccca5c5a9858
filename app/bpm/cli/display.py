"""Shared Rich display functions for packages, outcomes and cache entries.

Provides reusable table builders and summary printers used across CLI
commands.
"""

from datetime import datetime

from rich.table import Table

from bpm.core.aggregator import ScanReport
from bpm.models.outcome import InstallOutcome, OutcomeKind, VerifyReport
from bpm.models.record import CacheEntry, InstalledPackageRecord
from bpm.models.scan_result import PackageInfo
from bpm.utils.formatting import (
    console,
    create_table,
    format_duration,
    format_size,
    print_warning,
)

_OUTCOME_STYLES = {
    OutcomeKind.INSTALLED: ("added", "+installed"),
    OutcomeKind.UPDATED: ("changed", "~updated"),
    OutcomeKind.UP_TO_DATE: ("muted", "=current"),
    OutcomeKind.REMOVED: ("removed", "-removed"),
    OutcomeKind.NOT_INSTALLED: ("warning", "missing"),
    OutcomeKind.NOT_FOUND: ("error", "not found"),
    OutcomeKind.FAILED: ("error", "failed"),
}


def _versioning_label(record: InstalledPackageRecord) -> str:
    policy = record.versioning
    if policy.pinned_to_version:
        return "[pinned]pinned[/]"
    if policy.pinned_to_channel and policy.channel:
        return f"[channel]@{policy.channel}[/]"
    return ""


def create_available_table(packages: list[PackageInfo], title: str = "Available Packages") -> Table:
    """Create a table of scanned packages with their latest version and channels.

    Args:
        packages: Packages to list.
        title: Table title.

    Returns:
        Rich Table with Package, Latest, Versions, Channels and Provider columns.
    """
    table = create_table(title)
    table.add_column("Package", style="package.name", no_wrap=True)
    table.add_column("Latest", style="package.version")
    table.add_column("Versions", justify="right")
    table.add_column("Channels", style="channel")
    table.add_column("Provider", style="muted")

    for pkg in packages:
        latest = pkg.latest()
        table.add_row(
            pkg.name,
            latest.version.raw if latest else "-",
            str(len(pkg.versions)),
            ", ".join(sorted(pkg.channels)) or "-",
            latest.provider if latest else "-",
        )
    return table


def create_installed_table(records: list[InstalledPackageRecord]) -> Table:
    """Create a table of installed packages."""
    table = create_table("Installed Packages")
    table.add_column("Package", style="package.name", no_wrap=True)
    table.add_column("Version", style="package.version")
    table.add_column("Mount")
    table.add_column("Files", justify="right")
    table.add_column("Pin")
    table.add_column("Provider", style="muted")

    for record in records:
        table.add_row(
            record.name,
            record.version,
            record.mount,
            str(len(record.files)),
            _versioning_label(record),
            record.provider or "local",
        )
    return table


def create_cache_table(entries: list[CacheEntry], default_retention: int) -> Table:
    """Create a table of cache entries with their age and retention."""
    table = create_table("Cached Artifacts")
    table.add_column("Package", style="package.name", no_wrap=True)
    table.add_column("Version", style="package.version")
    table.add_column("Size", style="info", justify="right")
    table.add_column("Touched", style="muted")
    table.add_column("Retention", justify="right")
    table.add_column("Hash", style="muted", no_wrap=True)

    for entry in entries:
        retention = entry.retention if entry.retention is not None else default_retention
        table.add_row(
            entry.name,
            entry.version,
            format_size(entry.size),
            entry.touched.astimezone().strftime("%Y-%m-%d %H:%M"),
            format_duration(retention),
            entry.content_hash[:12],
        )
    return table


def create_outcomes_table(outcomes: list[InstallOutcome]) -> Table:
    """Create a table displaying the outcome of each request.

    Args:
        outcomes: Outcomes in request order.

    Returns:
        Rich Table with Status, Package, Version and Message columns.
    """
    table = create_table("Results", striped=False)
    table.add_column("Status", no_wrap=True)
    table.add_column("Package", no_wrap=True)
    table.add_column("Version")
    table.add_column("Message")

    for outcome in outcomes:
        style, label = _OUTCOME_STYLES[outcome.kind]
        if outcome.kind == OutcomeKind.UPDATED and outcome.previous and outcome.record:
            version = f"{outcome.previous.version} -> {outcome.record.version}"
        elif outcome.record is not None:
            version = outcome.record.version
        elif outcome.previous is not None:
            version = outcome.previous.version
        else:
            version = "-"
        table.add_row(
            f"[{style}]{label}[/]",
            outcome.name,
            version,
            f"[muted]{outcome.message}[/]",
        )
    return table


def print_outcomes_summary(outcomes: list[InstallOutcome]) -> None:
    """Print a one-line summary of a batch of outcomes."""
    counts: dict[OutcomeKind, int] = {}
    for outcome in outcomes:
        counts[outcome.kind] = counts.get(outcome.kind, 0) + 1
    parts = [f"{count} {kind.value}" for kind, count in counts.items()]
    failed = sum(1 for outcome in outcomes if not outcome.ok)
    style = "error" if failed else "dim"
    console.print(f"\n[{style}]{', '.join(parts)}[/]")


def print_scan_failures(report: ScanReport) -> None:
    """Warn about providers whose scan failed."""
    for failure in report.failures:
        print_warning(
            f"Provider '{failure.provider}' failed ({failure.kind.value}): {failure.message}"
        )


def print_verify_report(report: VerifyReport) -> None:
    """Print the result of verifying one package."""
    if not report.missing and not report.modified:
        console.print(f"[success]{report.name}[/]: {len(report.ok)} path(s) OK")
        return
    console.print(f"[warning]{report.name}[/]: {len(report.ok)} path(s) OK")
    restored = set(report.restored)
    for path in report.missing:
        mark = " [success](restored)[/]" if path in restored else ""
        console.print(f"  [removed]missing[/]  {path}{mark}")
    for path in report.modified:
        mark = " [success](restored)[/]" if path in restored else ""
        console.print(f"  [changed]modified[/] {path}{mark}")


def format_timestamp(value: datetime) -> str:
    """Format a timestamp in local time."""
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")
