"""Pin and unpin commands."""

from typing import Annotated

import typer

from bpm.cli.types import open_installer
from bpm.utils.formatting import print_success


def pin(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Installed package name.")],
    channel: Annotated[
        str | None,
        typer.Option(
            "--channel",
            help="Follow this channel on update instead of pinning the version.",
        ),
    ] = None,
) -> None:
    """Pin a package to its installed version or to a channel."""
    with open_installer(ctx) as installer:
        record = installer.pin(package, channel=channel)
    print_success(f"Pinned {record.name} to {channel or record.version}")


def unpin(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Installed package name.")],
) -> None:
    """Let a package follow the greatest available version again."""
    with open_installer(ctx) as installer:
        record = installer.unpin(package)
    print_success(f"Unpinned {record.name}")
