"""Install command implementation."""

from typing import Annotated

import typer

from bpm.cli.display import create_outcomes_table, print_outcomes_summary, print_scan_failures
from bpm.cli.types import ProvidersOption, fail, is_quiet, open_installer, parse_install_target
from bpm.core.errors import BpmError
from bpm.models.outcome import InstallRequest
from bpm.utils.formatting import console


def install(
    ctx: typer.Context,
    packages: Annotated[
        list[str],
        typer.Argument(help="Packages as name[@version|@channel], or paths to .bpm files."),
    ],
    target: Annotated[
        str | None,
        typer.Option(
            "--target",
            "-t",
            help="Install into this mount point instead of the artifact's own.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Reinstall even if the version is already installed.",
        ),
    ] = False,
    providers: ProvidersOption = None,
) -> None:
    """Install packages.

    Each request is resolved, fetched into the cache, verified and
    installed independently; one failure does not stop the others.

    Examples:
        bpm install foo               # Greatest available version
        bpm install foo@1.2.0         # Exact version (pins it)
        bpm install foo@stable        # Greatest version of a channel (pins the channel)
        bpm install ./foo_1.2.0.bpm   # Local artifact file
    """
    requests: list[InstallRequest] = []
    for text in packages:
        try:
            requests.append(parse_install_target(text, target=target, force=force))
        except BpmError as e:
            fail(str(e))

    with open_installer(ctx, providers) as installer:
        if any(request.path is None for request in requests):
            print_scan_failures(installer.scan())
        outcomes = installer.install_many(requests)

    console.print(create_outcomes_table(outcomes))
    if not is_quiet(ctx):
        print_outcomes_summary(outcomes)
    if not all(outcome.ok for outcome in outcomes):
        raise typer.Exit(code=1)
