"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules, most notably
a builder that writes real ``.bpm`` artifacts.
"""

import hashlib
import io
import json
import tarfile
from collections.abc import Callable, Iterator
from pathlib import Path, PurePosixPath
from typing import Any

import pytest
from bpm.core.config import BpmConfig, save_config
from bpm.core.installer import Installer

ARTIFACT_MTIME = 1_700_000_000

ArtifactFactory = Callable[..., Path]


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _parents(paths: list[str]) -> list[str]:
    found: set[str] = set()
    for path in paths:
        for parent in PurePosixPath(path).parents:
            if str(parent) != ".":
                found.add(str(parent))
    return sorted(found, key=lambda p: (p.count("/"), p))


def _add_bytes(archive: tarfile.TarFile, name: str, data: bytes, mode: int = 0o644) -> None:
    info = tarfile.TarInfo(name)
    info.size = len(data)
    info.mode = mode
    info.mtime = ARTIFACT_MTIME
    archive.addfile(info, io.BytesIO(data))


def write_artifact(
    directory: Path,
    name: str,
    version: str,
    files: dict[str, bytes] | None = None,
    *,
    symlinks: dict[str, str] | None = None,
    modes: dict[str, int] | None = None,
    mount: str | None = None,
    separator: str = "_",
    filename: str | None = None,
    meta_name: str | None = None,
    meta_version: str | None = None,
    extra_meta: dict[str, Any] | None = None,
    bad_data_hash: bool = False,
    bad_file_hashes: tuple[str, ...] = (),
    undeclared: dict[str, bytes] | None = None,
    links_first: bool = False,
) -> Path:
    """Write a ``.bpm`` artifact and return its path.

    By default the artifact installs ``bin/<name>`` containing
    ``b"<name> <version>"``.
    """
    if files is None:
        files = {f"bin/{name}": f"{name} {version}".encode()}
    symlinks = symlinks or {}
    modes = modes or {}
    undeclared = undeclared or {}
    dirs = [d for d in _parents(list(files) + list(symlinks)) if d not in symlinks]

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as data:
        for directory_name in dirs:
            info = tarfile.TarInfo(directory_name)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            info.mtime = ARTIFACT_MTIME
            data.addfile(info)
        link_infos = []
        for path, target in symlinks.items():
            info = tarfile.TarInfo(path)
            info.type = tarfile.SYMTYPE
            info.linkname = target
            info.mtime = ARTIFACT_MTIME
            link_infos.append(info)
        if links_first:
            for info in link_infos:
                data.addfile(info)
        for path, content in {**files, **undeclared}.items():
            _add_bytes(data, path, content, modes.get(path, 0o644))
        if not links_first:
            for info in link_infos:
                data.addfile(info)
    payload = buffer.getvalue()

    listing: dict[str, str] = {d: "d" for d in dirs}
    for path, content in files.items():
        digest = "0" * 64 if path in bad_file_hashes else _sha256(content)
        listing[path] = f"f:{digest}"
    for path, target in symlinks.items():
        listing[path] = f"s:{target}"

    meta: dict[str, Any] = {
        "name": meta_name or name,
        "version": meta_version or version,
        "data_hash": "0" * 64 if bad_data_hash else _sha256(payload),
        "dependencies": {},
        "files": listing,
    }
    if mount is not None:
        meta["mount"] = mount
    meta.update(extra_meta or {})

    directory.mkdir(parents=True, exist_ok=True)
    target_path = directory / (filename or f"{name}{separator}{version}.bpm")
    with tarfile.open(target_path, mode="w") as outer:
        _add_bytes(outer, "meta.json", json.dumps(meta).encode())
        _add_bytes(outer, "data.tar.gz", payload)
    return target_path


@pytest.fixture
def make_artifact() -> ArtifactFactory:
    """Factory writing real artifacts, see :func:`write_artifact`."""
    return write_artifact


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    """Empty filesystem provider root."""
    path = tmp_path / "repo"
    path.mkdir()
    return path


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    """Path of the TARGET mount point (not created)."""
    return tmp_path / "target"


@pytest.fixture
def bpm_config(tmp_path: Path, repo_dir: Path, target_dir: Path) -> BpmConfig:
    """Configuration with one filesystem provider and a TARGET mount point."""
    return BpmConfig.model_validate(
        {
            "database": str(tmp_path / "state" / "db.json"),
            "cache": {"dir": str(tmp_path / "cache")},
            "providers": {"local": str(repo_dir)},
            "mount": {"TARGET": str(target_dir), "docs": str(tmp_path / "docs")},
        }
    )


@pytest.fixture
def installer(bpm_config: BpmConfig) -> Iterator[Installer]:
    """Installer built from :func:`bpm_config`."""
    instance = Installer.from_config(bpm_config)
    yield instance
    instance.close()


@pytest.fixture
def config_file(tmp_path: Path, bpm_config: BpmConfig) -> Path:
    """:func:`bpm_config` saved as a TOML file."""
    return save_config(bpm_config, tmp_path / "config.toml")
