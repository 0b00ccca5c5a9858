"""Unit tests for InstallDatabase."""

from pathlib import Path

import pytest
from bpm.core.database import InstallDatabase
from bpm.core.errors import DatabaseError, LockTimeoutError
from bpm.models.record import InstallDatabaseDocument, InstalledPackageRecord
from filelock import FileLock


def make_record(name: str = "foo") -> InstalledPackageRecord:
    return InstalledPackageRecord(
        name=name,
        version="1.0.0",
        mount="TARGET",
        location="/opt/app",
        files={"bin": "d", f"bin/{name}": "f:abc"},
        content_hash="c0ffee",
    )


class TestRead:
    """Tests for InstallDatabase.read."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        """A database that was never written has no packages."""
        db = InstallDatabase(tmp_path / "db.json")
        assert db.read().packages == {}

    def test_empty_file_is_empty(self, tmp_path: Path) -> None:
        """A zero-length database file has no packages."""
        path = tmp_path / "db.json"
        path.write_text("  \n")
        assert InstallDatabase(path).read().packages == {}

    def test_corrupt_json_raises(self, tmp_path: Path) -> None:
        """Malformed JSON is reported instead of silently discarded."""
        path = tmp_path / "db.json"
        path.write_text("{not json")
        with pytest.raises(DatabaseError, match="corrupt"):
            InstallDatabase(path).read()

    def test_invalid_schema_raises(self, tmp_path: Path) -> None:
        """Records missing required fields make the database corrupt."""
        path = tmp_path / "db.json"
        path.write_text('{"packages": {"foo": {"name": "foo"}}}')
        with pytest.raises(DatabaseError):
            InstallDatabase(path).read()


class TestTransaction:
    """Tests for InstallDatabase.transaction and save."""

    def test_save_persists(self, tmp_path: Path) -> None:
        """Saved changes are visible to later readers."""
        db = InstallDatabase(tmp_path / "state" / "db.json")
        with db.transaction() as doc:
            doc.put(make_record())
            db.save(doc)

        assert db.read().get("foo") is not None

    def test_unsaved_changes_are_discarded(self, tmp_path: Path) -> None:
        """Leaving a transaction without saving keeps the prior state."""
        db = InstallDatabase(tmp_path / "db.json")
        with db.transaction() as doc:
            doc.put(make_record("foo"))
            db.save(doc)

        with db.transaction() as doc:
            doc.remove("foo")
            doc.put(make_record("bar"))

        names = set(db.read().packages)
        assert names == {"foo"}

    def test_exception_keeps_prior_state(self, tmp_path: Path) -> None:
        """An error inside a transaction leaves the file untouched."""
        db = InstallDatabase(tmp_path / "db.json")
        with db.transaction() as doc:
            doc.put(make_record())
            db.save(doc)
        before = (tmp_path / "db.json").read_bytes()

        with pytest.raises(RuntimeError), db.transaction() as doc:
            doc.remove("foo")
            raise RuntimeError("boom")

        assert (tmp_path / "db.json").read_bytes() == before

    def test_lock_timeout(self, tmp_path: Path) -> None:
        """A lock held elsewhere raises LockTimeoutError after the timeout."""
        db = InstallDatabase(tmp_path / "db.json", timeout=0.1)
        other = FileLock(tmp_path / "db.json.lock")
        with other, pytest.raises(LockTimeoutError), db.transaction():
            pass

    def test_custom_lockfile(self, tmp_path: Path) -> None:
        """The lock file location can be configured."""
        lockfile = tmp_path / "locks" / "bpm.lock"
        db = InstallDatabase(tmp_path / "db.json", lockfile=lockfile)
        with db.transaction():
            assert lockfile.exists()

    def test_saved_document_roundtrips(self, tmp_path: Path) -> None:
        """The saved file validates back into an equal document."""
        db = InstallDatabase(tmp_path / "db.json")
        with db.transaction() as doc:
            doc.put(make_record())
            db.save(doc)

        raw = (tmp_path / "db.json").read_text()
        loaded = InstallDatabaseDocument.model_validate_json(raw)
        assert loaded.get("foo") == db.read().get("foo")
