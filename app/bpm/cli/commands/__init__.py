"""bpm subcommands, one module per command or command group."""

from bpm.cli.commands import cache, config, install, pin, query, scan, status, uninstall, update

__all__ = [
    "cache",
    "config",
    "install",
    "pin",
    "query",
    "scan",
    "status",
    "uninstall",
    "update",
]
