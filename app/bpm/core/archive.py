"""Package artifact reading, verification, and extraction.

An artifact is an uncompressed tar archive holding two members:

- ``meta.json``: the package manifest (:class:`PackageMeta`)
- ``data.tar.gz``: the gzip-compressed file tree to install

The manifest's ``data_hash`` is the SHA-256 of the ``data.tar.gz`` member
and every regular file in the tree carries its own SHA-256 in the
manifest's file listing.
"""

import hashlib
import json
import logging
import os
import tarfile
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import IO

from pydantic import ValidationError

from bpm.core.errors import ContractError, IntegrityError, TransportError
from bpm.models.package import FileType, PackageMeta, split_parts

logger = logging.getLogger(__name__)

META_FILE_NAME = "meta.json"
DATA_FILE_NAME = "data.tar.gz"

_HASH_CHUNK = 1 << 20


def hash_stream(stream: IO[bytes]) -> str:
    """Compute the SHA-256 hex digest of a binary stream."""
    hasher = hashlib.sha256()
    for chunk in iter(lambda: stream.read(_HASH_CHUNK), b""):
        hasher.update(chunk)
    return hasher.hexdigest()


def hash_file(path: Path) -> str:
    """Compute the SHA-256 hex digest of a file."""
    with path.open("rb") as stream:
        return hash_stream(stream)


def _open_outer(path: Path) -> tarfile.TarFile:
    try:
        return tarfile.open(path, mode="r:")
    except FileNotFoundError as e:
        msg = f"Artifact not found: {path}"
        raise TransportError(msg) from e
    except (tarfile.TarError, OSError) as e:
        msg = f"Malformed artifact {path}: {e}"
        raise ContractError(msg) from e


def _member(outer: tarfile.TarFile, name: str, path: Path) -> IO[bytes]:
    try:
        member = outer.getmember(name)
    except KeyError as e:
        msg = f"Malformed artifact {path}: missing {name}"
        raise ContractError(msg) from e
    stream = outer.extractfile(member) if member.isfile() else None
    if stream is None:
        msg = f"Malformed artifact {path}: {name} is not a regular file"
        raise ContractError(msg)
    return stream


def read_meta(path: Path) -> PackageMeta:
    """Read the manifest of an artifact without verifying its payload.

    Raises:
        ContractError: If the artifact or its manifest is malformed.
    """
    with _open_outer(path) as outer, _member(outer, META_FILE_NAME, path) as stream:
        try:
            return PackageMeta.model_validate(json.load(stream))
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            msg = f"Malformed manifest in {path}: {e}"
            raise ContractError(msg) from e


def verify_artifact(path: Path, filename: str | None = None) -> PackageMeta:
    """Verify an artifact's payload hash and return its manifest.

    Args:
        path: Artifact file.
        filename: Published file name to check against the manifest;
            defaults to the name of ``path``.

    Raises:
        ContractError: If the artifact is malformed or its file name does not
            match the manifest's name and version.
        IntegrityError: If the payload does not match ``data_hash``.
    """
    meta = read_meta(path)

    parts = split_parts(filename or path.name)
    if parts is not None and parts != (meta.name, meta.version):
        msg = (
            f"Artifact {filename or path.name} does not match its manifest "
            f"({meta.name} {meta.version})"
        )
        raise ContractError(msg)

    with _open_outer(path) as outer, _member(outer, DATA_FILE_NAME, path) as stream:
        try:
            digest = hash_stream(stream)
        except (tarfile.TarError, OSError) as e:
            msg = f"Truncated artifact {path}: {e}"
            raise IntegrityError(msg) from e

    if digest != meta.data_hash:
        msg = f"Payload hash mismatch in {path}: expected {meta.data_hash}, got {digest}"
        raise IntegrityError(msg)

    logger.debug("Verified artifact %s (%s %s)", path, meta.name, meta.version)
    return meta


def member_path(name: str) -> PurePosixPath | None:
    """Normalize a payload member name to a safe relative path.

    Returns:
        Relative path, or None for the archive root entry.

    Raises:
        ContractError: If the name is absolute or escapes the root.
    """
    relative = PurePosixPath(name.replace("\\", "/"))
    if relative.is_absolute():
        msg = f"Unsafe absolute path in artifact: {name}"
        raise ContractError(msg)
    if not relative.parts:
        return None
    if any(part in {"", ".."} for part in relative.parts):
        msg = f"Unsafe path in artifact: {name}"
        raise ContractError(msg)
    return relative


def _check_link_target(relative: PurePosixPath, target: str) -> None:
    if PurePosixPath(target).is_absolute():
        msg = f"Unsafe absolute link target in artifact: {relative} -> {target}"
        raise ContractError(msg)
    resolved = os.path.normpath(os.path.join(str(relative.parent), target))
    if resolved == ".." or resolved.startswith("../"):
        msg = f"Link escapes package root: {relative} -> {target}"
        raise ContractError(msg)


def _check_no_link_in_path(
    relative: PurePosixPath, links: set[PurePosixPath], dest: Path
) -> None:
    for prefix in (relative, *relative.parents):
        if prefix in links:
            msg = f"Entry passes through link {prefix} in artifact: {relative}"
            raise ContractError(msg)
    parent = (dest / relative).parent.resolve()
    if not parent.is_relative_to(dest.resolve()):
        msg = f"Entry escapes package root: {relative}"
        raise ContractError(msg)


def _member_type(member: tarfile.TarInfo) -> FileType | None:
    if member.isdir():
        return FileType.DIR
    if member.issym():
        return FileType.SYMLINK
    if member.isfile():
        return FileType.FILE
    return None


def _write_file(source: IO[bytes], target: Path, expected: str | None, relative: str) -> None:
    hasher = hashlib.sha256()
    with target.open("wb") as out:
        for chunk in iter(lambda: source.read(_HASH_CHUNK), b""):
            hasher.update(chunk)
            out.write(chunk)
    if expected is not None and hasher.hexdigest() != expected:
        msg = f"Content hash mismatch for {relative}"
        raise IntegrityError(msg)


def unpack(
    path: Path,
    dest: Path,
    meta: PackageMeta,
    only: Iterable[str] | None = None,
) -> list[str]:
    """Extract an artifact's file tree into ``dest``.

    Relative paths, permission bits and modification times are preserved.
    Only entries declared in the manifest are extracted. Each regular file
    is checked against its declared hash while it is written.

    Args:
        path: Verified artifact file.
        dest: Destination directory; created if missing.
        meta: Manifest returned by :func:`verify_artifact`.
        only: Restrict extraction to these relative paths (and the
            directories leading to them).

    Returns:
        Relative paths written, in archive order.

    Raises:
        ContractError: If the payload contains unsafe or undeclared entries,
            or a declared file is missing from it.
        IntegrityError: If a file's content does not match its declared hash.
    """
    wanted = set(only) if only is not None else None
    dest.mkdir(parents=True, exist_ok=True)
    written: list[str] = []
    links: set[PurePosixPath] = set()
    dir_times: list[tuple[Path, int, float]] = []

    with _open_outer(path) as outer, _member(outer, DATA_FILE_NAME, path) as stream:
        try:
            payload = tarfile.open(fileobj=stream, mode="r:gz")
        except tarfile.TarError as e:
            msg = f"Malformed payload in {path}: {e}"
            raise ContractError(msg) from e

        with payload:
            try:
                for member in payload:
                    relative = member_path(member.name)
                    if relative is None:
                        continue
                    key = str(relative)
                    info = meta.files.get(key)
                    if info is None:
                        msg = f"Undeclared entry in artifact {path}: {key}"
                        raise ContractError(msg)
                    if wanted is not None and key not in wanted:
                        continue

                    if _member_type(member) not in (None, info.type):
                        msg = f"Entry type mismatch for {key} in {path}"
                        raise ContractError(msg)

                    _check_no_link_in_path(relative, links, dest)
                    target = dest / relative
                    target.parent.mkdir(parents=True, exist_ok=True)

                    if member.isdir():
                        target.mkdir(exist_ok=True)
                        dir_times.append((target, member.mode & 0o7777, member.mtime))
                    elif member.issym():
                        _check_link_target(relative, member.linkname)
                        if target.is_symlink() or target.exists():
                            target.unlink()
                        os.symlink(member.linkname, target)
                        links.add(relative)
                    elif member.isfile():
                        source = payload.extractfile(member)
                        if source is None:
                            msg = f"Failed to extract member: {key}"
                            raise ContractError(msg)
                        with source:
                            _write_file(source, target, info.hash, key)
                        os.chmod(target, member.mode & 0o7777)
                        os.utime(target, (member.mtime, member.mtime))
                    else:
                        msg = f"Unsupported entry type in artifact {path}: {key}"
                        raise ContractError(msg)
                    written.append(key)
            except tarfile.TarError as e:
                msg = f"Corrupt payload in {path}: {e}"
                raise IntegrityError(msg) from e

    # Directory metadata last, deepest first, so writes inside them do not reset mtimes
    for directory, mode, mtime in sorted(dir_times, key=lambda d: len(d[0].parts), reverse=True):
        os.chmod(directory, mode | 0o700)
        os.utime(directory, (mtime, mtime))

    if wanted is None:
        missing = [
            p for p, info in meta.files.items() if info.type == FileType.FILE and p not in written
        ]
        if missing:
            msg = f"Artifact {path} is missing declared files: {', '.join(sorted(missing))}"
            raise ContractError(msg)

    logger.debug("Unpacked %d entries from %s into %s", len(written), path, dest)
    return written
