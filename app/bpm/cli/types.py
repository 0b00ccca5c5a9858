"""Shared types and helpers for CLI commands.

Commands build an :class:`Installer` from the configuration selected by
the global ``--config`` option and report errors through the shared
consoles.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from bpm.core.aggregator import ProviderFilter
from bpm.core.config import BpmConfig, load_config
from bpm.core.errors import BpmError, ConfigNotFoundError
from bpm.core.installer import Installer
from bpm.core.paths import get_config_path
from bpm.core.resolver import parse_request
from bpm.models.outcome import InstallRequest
from bpm.models.package import split_parts
from bpm.utils.formatting import print_error

ProvidersOption = Annotated[
    list[str] | None,
    typer.Option(
        "--provider",
        "-p",
        help="Only use this provider (repeatable, prefix with ! to exclude).",
    ),
]


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    print_error(message)
    raise typer.Exit(code=1)


def config_path_from(ctx: typer.Context) -> Path:
    """Return the configuration path chosen by the global options."""
    obj = ctx.find_root().obj or {}
    return obj.get("config") or get_config_path()


def is_quiet(ctx: typer.Context) -> bool:
    """Return True if non-essential output is suppressed."""
    obj = ctx.find_root().obj or {}
    return bool(obj.get("quiet"))


def load_cli_config(ctx: typer.Context) -> BpmConfig:
    """Load the configuration, exiting with an error message on failure."""
    path = config_path_from(ctx)
    try:
        return load_config(path)
    except ConfigNotFoundError:
        fail(f"Config not found: {path}. Run 'bpm config init' to create one.")
    except BpmError as e:
        fail(str(e))


@contextmanager
def open_installer(ctx: typer.Context, providers: list[str] | None = None) -> Iterator[Installer]:
    """Yield an installer for the current configuration and close it afterwards.

    Unrecoverable errors (corrupt database, lock timeout, unreadable
    configuration) end the command with exit status 1.
    """
    config = load_cli_config(ctx)
    installer = Installer.from_config(config, provider_filter=ProviderFilter.from_names(providers))
    try:
        yield installer
    except BpmError as e:
        fail(str(e))
    finally:
        installer.close()


def parse_install_target(
    text: str, target: str | None = None, force: bool = False
) -> InstallRequest:
    """Turn a command line argument into an install request.

    An existing ``.bpm`` file is installed directly; anything else is read
    as ``name[@version|@channel]``.

    Raises:
        BpmError: If the argument is not a valid request.
    """
    path = Path(text)
    parts = split_parts(path.name)
    if parts is not None and path.is_file():
        return InstallRequest(name=parts[0], target=target, force=force, path=path.resolve())
    name, selector = parse_request(text)
    return InstallRequest(name=name, selector=selector, target=target, force=force)
