"""Helpers shared by the bpm core and CLI: atomic file writes and console output."""

from bpm.utils.fileio import atomic_write_bytes, remove_empty_dirs
from bpm.utils.formatting import (
    console,
    create_table,
    err_console,
    format_duration,
    format_size,
    print_error,
    print_info,
    print_success,
    print_warning,
)

__all__ = [
    "atomic_write_bytes",
    "console",
    "create_table",
    "err_console",
    "format_duration",
    "format_size",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "remove_empty_dirs",
]
