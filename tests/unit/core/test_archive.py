"""Unit tests for artifact verification and extraction."""

import os
import stat
from pathlib import Path

import pytest
from bpm.core.archive import hash_file, member_path, read_meta, unpack, verify_artifact
from bpm.core.errors import ContractError, IntegrityError, TransportError

# Timestamp the artifact builder stamps on every payload entry
ARTIFACT_MTIME = 1_700_000_000


class TestVerifyArtifact:
    """Tests for verify_artifact and read_meta."""

    def test_valid_artifact(self, tmp_path: Path, make_artifact) -> None:
        """A well-formed artifact yields its manifest."""
        path = make_artifact(tmp_path, "foo", "1.0.0", mount="docs")
        meta = verify_artifact(path)
        assert meta.name == "foo"
        assert meta.version == "1.0.0"
        assert meta.mount == "docs"
        assert meta.files["bin"].is_dir

    def test_dash_filename_accepted(self, tmp_path: Path, make_artifact) -> None:
        """Both accepted separators match the manifest."""
        path = make_artifact(tmp_path, "foo", "1.0.0", separator="-")
        assert verify_artifact(path).name == "foo"

    def test_filename_mismatch(self, tmp_path: Path, make_artifact) -> None:
        """A file name disagreeing with the manifest is a contract violation."""
        path = make_artifact(tmp_path, "foo", "1.0.0", meta_version="1.0.1")
        with pytest.raises(ContractError, match="does not match"):
            verify_artifact(path)

    def test_published_filename_checked(self, tmp_path: Path, make_artifact) -> None:
        """The published name is checked instead of the local one when given."""
        path = make_artifact(tmp_path, "foo", "1.0.0", filename="download.tmp")
        verify_artifact(path)
        with pytest.raises(ContractError):
            verify_artifact(path, filename="foo_2.0.0.bpm")

    def test_payload_hash_mismatch(self, tmp_path: Path, make_artifact) -> None:
        """Tampered payloads fail integrity checks."""
        path = make_artifact(tmp_path, "foo", "1.0.0", bad_data_hash=True)
        with pytest.raises(IntegrityError, match="Payload hash mismatch"):
            verify_artifact(path)

    def test_not_an_archive(self, tmp_path: Path) -> None:
        """Garbage files are malformed artifacts."""
        path = tmp_path / "foo_1.0.0.bpm"
        path.write_bytes(b"definitely not a tar archive" * 40)
        with pytest.raises(ContractError):
            read_meta(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is a transport failure."""
        with pytest.raises(TransportError):
            read_meta(tmp_path / "foo_1.0.0.bpm")


class TestUnpack:
    """Tests for unpack."""

    def test_extracts_tree_with_metadata(self, tmp_path: Path, make_artifact) -> None:
        """Files, modes, mtimes and symlinks are reproduced."""
        path = make_artifact(
            tmp_path,
            "foo",
            "1.0.0",
            files={"bin/foo": b"#!/bin/sh\n", "share/foo/readme": b"hi"},
            symlinks={"bin/foo-link": "foo"},
            modes={"bin/foo": 0o755},
        )
        meta = verify_artifact(path)
        dest = tmp_path / "out"

        written = unpack(path, dest, meta)

        assert set(written) == set(meta.files)
        assert (dest / "share/foo/readme").read_bytes() == b"hi"
        assert stat.S_IMODE((dest / "bin/foo").stat().st_mode) == 0o755
        assert (dest / "bin/foo").stat().st_mtime == ARTIFACT_MTIME
        assert (dest / "share").stat().st_mtime == ARTIFACT_MTIME
        assert os.readlink(dest / "bin/foo-link") == "foo"
        assert hash_file(dest / "bin/foo") == meta.files["bin/foo"].hash

    def test_only_subset(self, tmp_path: Path, make_artifact) -> None:
        """only= restricts extraction to the listed paths."""
        path = make_artifact(tmp_path, "foo", "1.0.0", files={"a": b"a", "b": b"b"})
        meta = verify_artifact(path)
        dest = tmp_path / "out"

        assert unpack(path, dest, meta, only=["b"]) == ["b"]
        assert not (dest / "a").exists()

    def test_undeclared_entry(self, tmp_path: Path, make_artifact) -> None:
        """Entries missing from the manifest are rejected."""
        path = make_artifact(tmp_path, "foo", "1.0.0", undeclared={"extra": b"x"})
        with pytest.raises(ContractError, match="Undeclared entry"):
            unpack(path, tmp_path / "out", verify_artifact(path))

    def test_file_hash_mismatch(self, tmp_path: Path, make_artifact) -> None:
        """A file whose content disagrees with the manifest fails integrity."""
        path = make_artifact(tmp_path, "foo", "1.0.0", bad_file_hashes=("bin/foo",))
        with pytest.raises(IntegrityError, match="bin/foo"):
            unpack(path, tmp_path / "out", verify_artifact(path))

    def test_escaping_symlink(self, tmp_path: Path, make_artifact) -> None:
        """Links pointing outside the destination are rejected."""
        path = make_artifact(tmp_path, "foo", "1.0.0", symlinks={"bin/evil": "../../etc/passwd"})
        with pytest.raises(ContractError, match="escapes"):
            unpack(path, tmp_path / "out", verify_artifact(path))
        assert not (tmp_path / "out" / "bin" / "evil").is_symlink()

    def test_chained_symlinks_cannot_escape(self, tmp_path: Path, make_artifact) -> None:
        """Entries written through links created by the same payload are rejected."""
        path = make_artifact(
            tmp_path / "repo",
            "foo",
            "1.0.0",
            files={"s1/s2/pwned": b"x"},
            symlinks={"s1": ".", "s1/s2": ".."},
            links_first=True,
        )
        dest = tmp_path / "mount" / "stage"

        with pytest.raises(ContractError, match="passes through link"):
            unpack(path, dest, verify_artifact(path))
        assert not (tmp_path / "mount" / "pwned").exists()
        assert not (dest / "pwned").exists()

    def test_file_through_symlinked_dir_rejected(self, tmp_path: Path, make_artifact) -> None:
        """A file below a symlink from the payload is never followed."""
        path = make_artifact(
            tmp_path / "repo",
            "foo",
            "1.0.0",
            files={"lib/x": b"x"},
            symlinks={"lib": "."},
            links_first=True,
        )
        with pytest.raises(ContractError, match="passes through link"):
            unpack(path, tmp_path / "out", verify_artifact(path))
        assert not (tmp_path / "out" / "x").exists()


class TestMemberPath:
    """Tests for member path normalization."""

    def test_normalizes(self) -> None:
        """Leading ./ is dropped and the root entry maps to None."""
        assert str(member_path("./bin/foo")) == "bin/foo"
        assert member_path(".") is None

    @pytest.mark.parametrize("name", ["/etc/passwd", "../x", "a/../../x"])
    def test_rejects_unsafe(self, name: str) -> None:
        """Absolute and traversing paths are rejected."""
        with pytest.raises(ContractError, match="Unsafe"):
            member_path(name)
