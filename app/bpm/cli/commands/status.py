"""Commands reporting on installed packages: list and verify."""

import json
from typing import Annotated

import typer

from bpm.cli.display import create_installed_table, print_verify_report
from bpm.cli.types import is_quiet, open_installer
from bpm.core.errors import BpmError, DatabaseError, LockTimeoutError
from bpm.utils.formatting import console, print_error, print_info


def list_installed(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """List installed packages."""
    with open_installer(ctx) as installer:
        records = installer.list_installed()

    if json_output:
        data = [record.model_dump(mode="json", exclude={"files"}) for record in records]
        console.print_json(json.dumps(data))
        return

    if not records:
        print_info("No packages installed.")
        return
    console.print(create_installed_table(records))
    if not is_quiet(ctx):
        console.print(f"\n[dim]{len(records)} package(s) installed[/]")


def verify(
    ctx: typer.Context,
    packages: Annotated[
        list[str] | None,
        typer.Argument(help="Packages to verify (default: all installed)."),
    ] = None,
    restore: Annotated[
        bool,
        typer.Option(
            "--restore",
            "-r",
            help="Re-extract missing or modified files from the cached artifact.",
        ),
    ] = False,
) -> None:
    """Check installed files against their recorded hashes."""
    failed = False
    with open_installer(ctx) as installer:
        names = packages or [record.name for record in installer.list_installed()]
        if not names:
            print_info("No packages installed.")
            return
        for name in names:
            try:
                report = installer.verify(name, restore=restore)
            except (DatabaseError, LockTimeoutError):
                raise
            except BpmError as e:
                print_error(f"{name}: {e}")
                failed = True
                continue
            print_verify_report(report)
            failed = failed or not report.is_clean

    if failed:
        raise typer.Exit(code=1)
