"""File I/O helpers for durable writes."""

import os
from pathlib import Path
from tempfile import NamedTemporaryFile


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` atomically.

    The data is written to a temporary file in the same directory, flushed
    to disk, and renamed over the target with os.replace(). Readers see
    either the old or the new content, never a partial file. The temporary
    file is removed on failure.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(mode="wb", dir=path.parent, delete=False, suffix=".tmp") as f:
            tmp_path = Path(f.name)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise


def remove_empty_dirs(root: Path, relatives: list[str]) -> list[str]:
    """Remove directories under ``root`` that are empty, deepest first.

    Args:
        root: Base directory.
        relatives: Relative directory paths to consider.

    Returns:
        Relative paths of the directories that were removed.
    """
    removed: list[str] = []
    for relative in sorted(relatives, key=lambda p: p.count("/"), reverse=True):
        directory = root / relative
        if directory.is_symlink() or not directory.is_dir():
            continue
        try:
            directory.rmdir()
        except OSError:
            # Not empty
            continue
        removed.append(relative)
    return removed
