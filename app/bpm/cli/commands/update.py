"""Update command implementation."""

from typing import Annotated

import typer

from bpm.cli.display import create_outcomes_table, print_outcomes_summary, print_scan_failures
from bpm.cli.types import ProvidersOption, fail, is_quiet, open_installer
from bpm.core.errors import BpmError
from bpm.core.resolver import parse_request
from bpm.utils.formatting import console, print_info


def update(
    ctx: typer.Context,
    packages: Annotated[
        list[str] | None,
        typer.Argument(help="Packages to update as name[@version|@channel] (default: all)."),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Update pinned packages and allow downgrades.",
        ),
    ] = False,
    providers: ProvidersOption = None,
) -> None:
    """Update installed packages to the greatest available version.

    Channel-pinned packages follow their channel; version-pinned packages
    are left alone unless a version is given or --force is set.

    Examples:
        bpm update                    # Update everything
        bpm update foo                # Update one package
        bpm update foo@2.0.0          # Move foo to 2.0.0
    """
    requests: list[tuple[str, str | None]] = []
    for text in packages or []:
        try:
            requests.append(parse_request(text))
        except BpmError as e:
            fail(str(e))

    with open_installer(ctx, providers) as installer:
        if not requests and not installer.list_installed():
            print_info("No packages installed.")
            return
        print_scan_failures(installer.scan())
        if requests:
            outcomes = [
                installer.update(name, selector, force=force) for name, selector in requests
            ]
        else:
            outcomes = installer.update_all(force=force)

    console.print(create_outcomes_table(outcomes))
    if not is_quiet(ctx):
        print_outcomes_summary(outcomes)
    if not all(outcome.ok for outcome in outcomes):
        raise typer.Exit(code=1)
