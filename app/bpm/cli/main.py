"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer

from bpm import __version__
from bpm.cli.commands import cache, config, install, pin, query, scan, status, uninstall, update


app = typer.Typer(
    name="bpm",
    help="Resolve, cache and install versioned package artifacts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"bpm version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable debug logging.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Configuration file (default: $BPM_CONFIG or ~/.config/bpm/config.toml).",
        ),
    ] = None,
) -> None:
    """bpm - Package manager for versioned artifacts.

    Scans filesystem and HTTP providers, resolves versions and channels,
    caches downloaded artifacts and installs them into mount points.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    # read through config_path_from() and is_quiet() in cli.types
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config"] = config_path


# Commands taking positional arguments register directly; verb groups are sub-apps.
app.command("scan")(scan.scan_packages)
app.command("search")(scan.search)
app.command("list")(status.list_installed)
app.command("install")(install.install)
app.command("update")(update.update)
app.command("uninstall")(uninstall.uninstall)
app.command("verify")(status.verify)
app.command("pin")(pin.pin)
app.command("unpin")(pin.unpin)
app.add_typer(query.app, name="query")
app.add_typer(cache.app, name="cache")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
