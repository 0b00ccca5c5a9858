"""Scan and search command implementation.

Lists the packages offered by the configured providers.
"""

import json
from enum import Enum
from typing import Annotated

import typer

from bpm.cli.display import create_available_table, print_scan_failures
from bpm.cli.types import ProvidersOption, is_quiet, open_installer
from bpm.core.aggregator import ScanReport
from bpm.models.scan_result import PackageInfo
from bpm.utils.formatting import console, print_info


class OutputFormat(str, Enum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


FormatOption = Annotated[
    OutputFormat,
    typer.Option(
        "--format",
        "-f",
        help="Output format: table or json.",
        case_sensitive=False,
    ),
]


def _show(
    ctx: typer.Context,
    report: ScanReport,
    packages: list[PackageInfo],
    title: str,
    output_format: OutputFormat,
) -> None:
    if output_format == OutputFormat.JSON:
        data = report.result.to_dict()
        wanted = {pkg.name for pkg in packages}
        data["packages"] = {k: v for k, v in data["packages"].items() if k in wanted}
        data["failures"] = [
            {"provider": f.provider, "kind": f.kind.value, "message": f.message}
            for f in report.failures
        ]
        console.print_json(json.dumps(data))
        return

    print_scan_failures(report)
    if not packages:
        print_info("No packages found.")
        return
    console.print(create_available_table(packages, title))
    if not is_quiet(ctx):
        console.print(
            f"\n[dim]{len(packages)} package(s) from {len(report.scanned)} provider(s)[/]"
        )


def scan_packages(
    ctx: typer.Context,
    providers: ProvidersOption = None,
    output_format: FormatOption = OutputFormat.TABLE,
) -> None:
    """Scan providers and list available packages.

    Examples:
        bpm scan                      # Scan every configured provider
        bpm scan -p local             # Scan one provider
        bpm scan -p '!remote'         # Skip a provider
        bpm scan --format json        # Output as JSON
    """
    with open_installer(ctx, providers) as installer:
        report = installer.scan()

    packages = report.result.search("")
    _show(ctx, report, packages, "Available Packages", output_format)
    if not report.ok and not packages:
        raise typer.Exit(code=1)


def search(
    ctx: typer.Context,
    needle: Annotated[str, typer.Argument(help="Text to look for in package names.")],
    providers: ProvidersOption = None,
    output_format: FormatOption = OutputFormat.TABLE,
) -> None:
    """Search available packages by name."""
    with open_installer(ctx, providers) as installer:
        report = installer.scan()

    _show(ctx, report, report.result.search(needle), f"Packages matching '{needle}'", output_format)
