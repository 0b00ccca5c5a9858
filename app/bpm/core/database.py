"""Install database I/O.

The install database is a JSON document mapping package names to their
installed records. Readers take an unlocked snapshot; every mutating
operation holds an exclusive file lock for the duration of its
transaction and writes the document with an atomic rename.
"""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout
from pydantic import ValidationError

from bpm.core.errors import DatabaseError, LockTimeoutError, TransportError
from bpm.models.record import InstallDatabaseDocument
from bpm.utils.fileio import atomic_write_bytes

logger = logging.getLogger(__name__)

# Default seconds to wait for the database lock
DEFAULT_LOCK_TIMEOUT = 30.0


class InstallDatabase:
    """Owner of the on-disk install database.

    Args:
        path: Database JSON file.
        lockfile: Lock file path; defaults to ``<path>.lock``.
        timeout: Seconds to wait for the exclusive lock.

    Example:
        >>> db = InstallDatabase(Path("/var/lib/bpm/db.json"))
        >>> with db.transaction() as doc:
        ...     doc.remove("foo")
        ...     db.save(doc)
    """

    def __init__(
        self,
        path: Path,
        lockfile: Path | None = None,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        self.path = path
        self.lockfile = lockfile or path.with_name(path.name + ".lock")
        self.timeout = timeout
        self._lock = FileLock(self.lockfile, timeout=timeout)

    def read(self) -> InstallDatabaseDocument:
        """Load a consistent snapshot of the database.

        A missing or empty file is an empty database.

        Raises:
            DatabaseError: If the file cannot be read or is corrupt.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return InstallDatabaseDocument()
        except OSError as e:
            msg = f"Cannot read install database {self.path}: {e}"
            raise DatabaseError(msg) from e

        if not raw.strip():
            return InstallDatabaseDocument()
        try:
            return InstallDatabaseDocument.model_validate(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            msg = f"Install database {self.path} is corrupt: {e}"
            raise DatabaseError(msg) from e

    def save(self, doc: InstallDatabaseDocument) -> None:
        """Write the database atomically.

        Must be called while holding :meth:`transaction`.

        Raises:
            TransportError: If the file cannot be written.
        """
        data = doc.model_dump_json(indent=2).encode("utf-8")
        try:
            atomic_write_bytes(self.path, data)
        except OSError as e:
            msg = f"Failed to write install database {self.path}: {e}"
            raise TransportError(msg) from e
        logger.debug("Saved install database with %d package(s)", len(doc.packages))

    @contextmanager
    def transaction(self) -> Iterator[InstallDatabaseDocument]:
        """Hold the exclusive lock and yield a freshly loaded database.

        Changes are persisted only by an explicit :meth:`save` inside the
        block; leaving the block without saving keeps the prior state.

        Raises:
            LockTimeoutError: If the lock is held elsewhere past the timeout.
            DatabaseError: If the database is corrupt.
        """
        self.lockfile.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._lock.acquire()
        except Timeout as e:
            msg = f"Install database is locked by another process ({self.lockfile})"
            raise LockTimeoutError(msg) from e
        try:
            yield self.read()
        finally:
            self._lock.release()
