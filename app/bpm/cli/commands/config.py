"""Configuration commands: create and show the bpm configuration file."""

from typing import Annotated

import tomli_w
import typer
from pydantic import ValidationError

from bpm.cli.types import config_path_from, fail, load_cli_config
from bpm.core.config import BpmConfig, save_config
from bpm.core.errors import BpmError
from bpm.utils.formatting import console, print_success

app = typer.Typer(
    help="Create and inspect the configuration file.",
    no_args_is_help=True,
)


def _pairs(values: list[str] | None, what: str) -> dict[str, str]:
    result: dict[str, str] = {}
    for value in values or []:
        name, sep, location = value.partition("=")
        if not sep or not name or not location:
            fail(f"Invalid {what} '{value}', expected NAME=LOCATION")
        result[name] = location
    return result


@app.command()
def init(
    ctx: typer.Context,
    providers: Annotated[
        list[str] | None,
        typer.Option(
            "--provider",
            "-p",
            help="Provider as NAME=LOCATION, in priority order (repeatable).",
        ),
    ] = None,
    mounts: Annotated[
        list[str] | None,
        typer.Option(
            "--mount",
            "-m",
            help="Mount point as NAME=PATH; the first one is the default (repeatable).",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite an existing configuration file.",
        ),
    ] = False,
) -> None:
    """Write a new configuration file.

    Examples:
        bpm config init -p local=/srv/packages -m TARGET=/opt/app
        bpm config init -p remote=https://packages.example.com/ -m TARGET=/opt/app
    """
    path = config_path_from(ctx)
    if path.exists() and not force:
        fail(f"Config already exists: {path}. Use --force to overwrite.")

    mount_entries = {
        name: {"path": location, "default": index == 0}
        for index, (name, location) in enumerate(_pairs(mounts, "mount point").items())
    }
    try:
        config = BpmConfig.model_validate(
            {"providers": _pairs(providers, "provider"), "mount": mount_entries}
        )
        save_config(config, path)
    except ValidationError as e:
        fail(f"Invalid configuration: {e}")
    except BpmError as e:
        fail(str(e))
    print_success(f"Wrote {path}")


@app.command()
def show(ctx: typer.Context) -> None:
    """Show the effective configuration, including defaults."""
    config = load_cli_config(ctx)
    console.print(f"[dim]# {config_path_from(ctx)}[/]")
    text = tomli_w.dumps(config.model_dump(mode="json", exclude_none=True))
    console.print(text, markup=False, highlight=False, soft_wrap=True)
