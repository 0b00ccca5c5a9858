"""Cache inspection and maintenance commands."""

from typing import Annotated

import typer

from bpm.cli.display import create_cache_table, print_scan_failures
from bpm.cli.types import ProvidersOption, fail, is_quiet, open_installer
from bpm.core.config import parse_duration
from bpm.core.errors import BpmError
from bpm.core.resolver import parse_request
from bpm.models.record import CacheEntry
from bpm.utils.formatting import console, format_size, print_error, print_info, print_success

app = typer.Typer(
    help="Inspect and maintain the artifact cache.",
    no_args_is_help=True,
)

AllOption = Annotated[
    bool,
    typer.Option(
        "--all",
        "-a",
        help="Also remove artifacts of installed packages.",
    ),
]


def _report_removed(removed: list[CacheEntry]) -> None:
    if not removed:
        print_info("Nothing to remove.")
        return
    total = sum(entry.size for entry in removed)
    print_success(f"Removed {len(removed)} artifact(s), {format_size(total)} freed")


@app.command("list")
def list_entries(ctx: typer.Context) -> None:
    """List cached artifacts."""
    with open_installer(ctx) as installer:
        entries = installer.cache.list_entries()
        retention = installer.cache.retention

    if not entries:
        print_info("Cache is empty.")
        return
    console.print(create_cache_table(entries, retention))
    if not is_quiet(ctx):
        total = sum(entry.size for entry in entries)
        console.print(f"\n[dim]{len(entries)} artifact(s), {format_size(total)}[/]")


@app.command()
def clean(ctx: typer.Context) -> None:
    """Remove expired artifacts and stale partial downloads."""
    with open_installer(ctx) as installer:
        removed = installer.cache.clean()
    _report_removed(removed)


@app.command()
def clear(ctx: typer.Context, include_in_use: AllOption = False) -> None:
    """Remove every artifact not needed by an installed package."""
    with open_installer(ctx) as installer:
        removed = installer.cache.clear(include_in_use=include_in_use)
    _report_removed(removed)


@app.command()
def evict(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Package as name or name@version.")],
    include_in_use: AllOption = False,
) -> None:
    """Remove the cached artifacts of one package."""
    try:
        name, version = parse_request(package)
    except BpmError as e:
        fail(str(e))
    with open_installer(ctx) as installer:
        removed = installer.cache.evict(name, version, include_in_use=include_in_use)
    _report_removed(removed)


@app.command()
def touch(
    ctx: typer.Context,
    package: Annotated[str, typer.Argument(help="Package as name or name@version.")],
    retention: Annotated[
        str | None,
        typer.Option(
            "--retention",
            "-r",
            help="Keep these entries for this long (e.g. 90d, 12h).",
        ),
    ] = None,
) -> None:
    """Refresh the access time of cached artifacts, optionally setting their retention."""
    try:
        name, version = parse_request(package)
        seconds = parse_duration(retention) if retention is not None else None
    except (BpmError, ValueError) as e:
        fail(str(e))
    with open_installer(ctx) as installer:
        touched = installer.cache.touch(name, version, retention=seconds)
    if not touched:
        print_info(f"No cached artifacts for {package}.")
        raise typer.Exit(code=1)
    print_success(f"Touched {len(touched)} artifact(s)")


@app.command()
def fetch(
    ctx: typer.Context,
    packages: Annotated[
        list[str],
        typer.Argument(help="Packages as name[@version|@channel]."),
    ],
    providers: ProvidersOption = None,
) -> None:
    """Download artifacts into the cache without installing them."""
    try:
        parsed = [parse_request(text) for text in packages]
    except BpmError as e:
        fail(str(e))

    failed = False
    with open_installer(ctx, providers) as installer:
        print_scan_failures(installer.scan())
        requests = []
        for name, selector in parsed:
            try:
                resolved = installer.resolve(name, selector)
            except BpmError as e:
                print_error(f"{name}: {e}")
                failed = True
                continue
            requests.append((installer.provider(resolved.info.provider), name, resolved.info))
        results = installer.cache.fetch_many(requests)

    for (_, name, info), result in zip(requests, results, strict=True):
        if result.artifact is not None:
            console.print(f"[success]cached[/] {name} {info.version} ({result.artifact.path.name})")
        else:
            print_error(f"{name} {info.version}: {result.error}")
            failed = True
    if failed:
        raise typer.Exit(code=1)
