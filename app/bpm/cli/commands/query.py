"""Query commands for file ownership and package contents."""

from pathlib import Path
from typing import Annotated

import typer

from bpm.cli.types import open_installer
from bpm.utils.formatting import console, print_info

app = typer.Typer(
    help="Query installed files.",
    no_args_is_help=True,
)


@app.command()
def owner(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="File to look up.")],
) -> None:
    """Show which installed package owns a file."""
    with open_installer(ctx) as installer:
        found = installer.query_owner(path)
    if found is None:
        print_info(f"{path} is not owned by any installed package.")
        raise typer.Exit(code=1)
    record, relative = found
    console.print(f"[package.name]{record.name}[/] [package.version]{record.version}[/] {relative}")


@app.command()
def files(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Installed package name.")],
) -> None:
    """List the files installed by a package."""
    with open_installer(ctx) as installer:
        paths = installer.query_files(package)
    for path in paths:
        console.print(str(path), markup=False, highlight=False, soft_wrap=True)
