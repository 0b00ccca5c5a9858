"""Content-addressed artifact cache.

Verified artifacts are stored under ``objects/<hh>/<hash>.bpm`` where
``<hash>`` is the SHA-256 of the artifact bytes. An ``index.json`` document
records each entry's package identity, provenance and last access time.

Downloads land in ``tmp/temp_download_*`` and are promoted into the object
store only after verification, so a failed or cancelled fetch never leaves
a cache entry behind.
"""

import hashlib
import json
import logging
import os
import shutil
import threading
import time
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from tempfile import NamedTemporaryFile

from filelock import FileLock, Timeout
from pydantic import ValidationError

from bpm.core.archive import hash_file, read_meta, verify_artifact
from bpm.core.database import DEFAULT_LOCK_TIMEOUT, InstallDatabase
from bpm.core.errors import BpmError, ContractError, LockTimeoutError, TransportError
from bpm.models.package import PKG_EXTENSION, PackageMeta
from bpm.models.record import CacheEntry, CacheIndexDocument
from bpm.models.scan_result import VersionInfo
from bpm.providers.base import Provider
from bpm.utils.fileio import atomic_write_bytes

logger = logging.getLogger(__name__)

# Default retention window in seconds (30 days)
DEFAULT_RETENTION = 30 * 24 * 3600

# Default number of concurrent fetches
DEFAULT_FETCH_JOBS = 4

# Prefix of in-progress download files
TEMP_DOWNLOAD_PREFIX = "temp_download_"

# Temporary downloads older than this are considered abandoned
STALE_TEMP_SECONDS = 3600

INDEX_FILE_NAME = "index.json"


@dataclass(frozen=True, slots=True)
class CachedArtifact:
    """A verified artifact available in the cache.

    Attributes:
        path: Location of the artifact bytes.
        entry: Index entry describing it.
        meta: Manifest read from the artifact.
    """

    path: Path
    entry: CacheEntry
    meta: PackageMeta


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of one request in a batch fetch.

    Attributes:
        info: The requested version.
        artifact: Cached artifact on success.
        error: Failure on error.
    """

    info: VersionInfo
    artifact: CachedArtifact | None = None
    error: BpmError | None = None



class _KeyLock:
    """In-process lock for one fetch key, dropped when its last user leaves."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


def _now() -> datetime:
    return datetime.now(UTC)


class CacheManager:
    """Owner of the artifact cache directory.

    Args:
        cache_dir: Root directory of the cache.
        database: Install database consulted so that artifacts of installed
            packages are never evicted.
        retention: Default retention window in seconds.
        auto_clean: Evict expired entries after mutating operations.
        fetch_jobs: Maximum concurrent fetches in :meth:`fetch_many`.
        fetch_timeout: Network timeout passed to providers.
        lock_timeout: Seconds to wait for the index lock.
    """

    def __init__(
        self,
        cache_dir: Path,
        database: InstallDatabase | None = None,
        retention: int = DEFAULT_RETENTION,
        auto_clean: bool = False,
        fetch_jobs: int = DEFAULT_FETCH_JOBS,
        fetch_timeout: float | None = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ) -> None:
        self.cache_dir = cache_dir
        self.database = database
        self.retention = retention
        self.auto_clean = auto_clean
        self.fetch_jobs = max(1, fetch_jobs)
        self.fetch_timeout = fetch_timeout
        self.lock_timeout = lock_timeout

        self.index_path = cache_dir / INDEX_FILE_NAME
        self._index_lock = FileLock(cache_dir / f"{INDEX_FILE_NAME}.lock", timeout=lock_timeout)
        self._guard = threading.Lock()
        self._key_locks: dict[str, _KeyLock] = {}

    @property
    def objects_dir(self) -> Path:
        """Directory holding verified artifacts."""
        return self.cache_dir / "objects"

    @property
    def tmp_dir(self) -> Path:
        """Directory holding in-progress downloads."""
        return self.cache_dir / "tmp"

    @property
    def locks_dir(self) -> Path:
        """Directory holding per-key fetch locks."""
        return self.cache_dir / "locks"

    def object_path(self, content_hash: str) -> Path:
        """Return the stored location of an artifact by content hash."""
        return self.objects_dir / content_hash[:2] / f"{content_hash}.{PKG_EXTENSION}"

    def read_index(self) -> CacheIndexDocument:
        """Load a snapshot of the cache index.

        A missing, empty or unreadable index is treated as an empty cache:
        the index only describes objects that can be fetched again.
        """
        try:
            raw = self.index_path.read_bytes()
        except FileNotFoundError:
            return CacheIndexDocument()
        except OSError as e:
            msg = f"Cannot read cache index {self.index_path}: {e}"
            raise TransportError(msg) from e
        if not raw.strip():
            return CacheIndexDocument()
        try:
            return CacheIndexDocument.model_validate(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            logger.warning("Cache index %s is corrupt, starting empty: %s", self.index_path, e)
            return CacheIndexDocument()

    def _save_index(self, index: CacheIndexDocument) -> None:
        try:
            atomic_write_bytes(self.index_path, index.model_dump_json(indent=2).encode("utf-8"))
        except OSError as e:
            msg = f"Failed to write cache index {self.index_path}: {e}"
            raise TransportError(msg) from e

    @contextmanager
    def _index_transaction(self) -> Iterator[CacheIndexDocument]:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        try:
            self._index_lock.acquire()
        except Timeout as e:
            msg = f"Cache index is locked by another process ({self.index_path})"
            raise LockTimeoutError(msg) from e
        try:
            yield self.read_index()
        finally:
            self._index_lock.release()

    @contextmanager
    def _in_use(self) -> Iterator[set[str]]:
        # Lock order: install database first, then cache index
        if self.database is None:
            yield set()
            return
        with self.database.transaction() as doc:
            yield doc.content_hashes()

    def list_entries(self) -> list[CacheEntry]:
        """Return all cache entries sorted by package name and version."""
        entries = self.read_index().entries.values()
        return sorted(entries, key=lambda e: (e.name, e.version, e.provider or ""))

    def get(self, content_hash: str) -> CachedArtifact | None:
        """Return a cached artifact by content hash, or None if absent."""
        entry = self.read_index().entries.get(content_hash)
        if entry is None:
            return None
        return self._validate(entry)

    def lookup(self, name: str, version: str, provider: str | None) -> CachedArtifact | None:
        """Return the cached artifact for a (name, version, provider) identity."""
        entry = self.read_index().find(name, version, provider)
        if entry is None:
            return None
        return self._validate(entry)

    def _validate(self, entry: CacheEntry) -> CachedArtifact | None:
        path = self.object_path(entry.content_hash)
        try:
            if path.is_file() and hash_file(path) == entry.content_hash:
                return CachedArtifact(path=path, entry=entry, meta=read_meta(path))
        except (OSError, BpmError) as e:
            logger.debug("Cached object %s unusable: %s", path, e)

        logger.warning("Dropping damaged cache entry %s (%s)", entry.filename, entry.content_hash)
        with self._index_transaction() as index:
            index.entries.pop(entry.content_hash, None)
            self._save_index(index)
        path.unlink(missing_ok=True)
        return None

    def _touch(self, content_hash: str) -> None:
        with self._index_transaction() as index:
            entry = index.entries.get(content_hash)
            if entry is not None:
                entry.touched = _now()
                self._save_index(index)

    @contextmanager
    def _exclusive(self, key: str) -> Iterator[None]:
        """Allow at most one fetch per key, across threads and processes."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        self.locks_dir.mkdir(parents=True, exist_ok=True)
        file_lock = FileLock(self.locks_dir / f"{digest}.lock", timeout=self.lock_timeout)
        with self._guard:
            key_lock = self._key_locks.setdefault(key, _KeyLock())
            key_lock.users += 1
        try:
            with key_lock.lock:
                try:
                    file_lock.acquire()
                except Timeout as e:
                    msg = f"Timed out waiting for another fetch of {key}"
                    raise LockTimeoutError(msg) from e
                try:
                    yield
                finally:
                    file_lock.release()
        finally:
            with self._guard:
                key_lock.users -= 1
                if key_lock.users == 0:
                    del self._key_locks[key]

    def _temp_file(self) -> Path:
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        with NamedTemporaryFile(
            dir=self.tmp_dir,
            prefix=TEMP_DOWNLOAD_PREFIX,
            suffix=f".{PKG_EXTENSION}",
            delete=False,
        ) as f:
            return Path(f.name)

    def _promote(
        self, temp: Path, filename: str, provider: str | None, meta: PackageMeta
    ) -> CachedArtifact:
        content_hash = hash_file(temp)
        target = self.object_path(content_hash)
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(temp, target)

        entry = CacheEntry(
            content_hash=content_hash,
            filename=filename,
            name=meta.name,
            version=meta.version,
            provider=provider,
            sources=[provider] if provider is not None else [],
            size=target.stat().st_size,
        )
        with self._index_transaction() as index:
            previous = index.entries.get(content_hash)
            if previous is not None:
                entry.retention = previous.retention
                known = [*previous.sources, previous.provider, *entry.sources]
                entry.sources = list(dict.fromkeys(p for p in known if p is not None))
            index.entries[content_hash] = entry
            self._save_index(index)

        logger.info("Cached %s %s (%s)", meta.name, meta.version, content_hash[:12])
        return CachedArtifact(path=target, entry=entry, meta=meta)

    def get_or_fetch(
        self,
        provider: Provider,
        info: VersionInfo,
        name: str,
        cancel: threading.Event | None = None,
    ) -> CachedArtifact:
        """Return a verified artifact, fetching it through ``provider`` on a miss.

        Concurrent callers asking for the same (name, version, provider)
        wait for a single fetch and then share its result.

        Args:
            provider: Provider the version was resolved from.
            info: Resolved version.
            name: Package name.
            cancel: Event that aborts the download when set.

        Raises:
            NotFoundError: If the provider has no such artifact.
            TransportError: If the download fails.
            IntegrityError: If the downloaded bytes fail verification.
            ContractError: If the artifact is malformed or mislabeled.
            CancelledError: If ``cancel`` was set.
        """
        version = info.version.raw
        key = f"{provider.name}\0{name}\0{version}"

        with self._exclusive(key):
            cached = self.lookup(name, version, provider.name)
            if cached is not None:
                logger.debug("Cache hit for %s %s from %s", name, version, provider.name)
                self._touch(cached.entry.content_hash)
                return cached

            temp = self._temp_file()
            try:
                size = provider.fetch(
                    name,
                    info.version,
                    temp,
                    location=info.uri,
                    timeout=self.fetch_timeout,
                    cancel=cancel,
                )
                logger.debug("Fetched %d bytes for %s %s", size, name, version)
                meta = verify_artifact(temp, filename=info.filename)
                if meta.name != name or meta.version != version:
                    msg = (
                        f"Provider '{provider.name}' served {meta.name} {meta.version} "
                        f"for {name} {version}"
                    )
                    raise ContractError(msg)
                return self._promote(temp, info.filename, provider.name, meta)
            finally:
                temp.unlink(missing_ok=True)

    def store_file(self, path: Path) -> CachedArtifact:
        """Verify a local artifact file and add a copy of it to the cache.

        Raises:
            ContractError: If the artifact is malformed or mislabeled.
            IntegrityError: If the artifact fails verification.
            TransportError: If the file cannot be copied.
        """
        meta = verify_artifact(path)
        temp = self._temp_file()
        try:
            shutil.copyfile(path, temp)
            return self._promote(temp, path.name, None, meta)
        except OSError as e:
            msg = f"Failed to cache {path}: {e}"
            raise TransportError(msg) from e
        finally:
            temp.unlink(missing_ok=True)

    def fetch_many(
        self,
        requests: Sequence[tuple[Provider, str, VersionInfo]],
        cancel: threading.Event | None = None,
    ) -> list[FetchResult]:
        """Fetch several artifacts concurrently, bounded by ``fetch_jobs``.

        Args:
            requests: (provider, package name, version) triples.
            cancel: Event that aborts outstanding downloads when set.

        Returns:
            One result per request, in request order.
        """
        results: dict[int, FetchResult] = {}
        futures = {}
        pool = ThreadPoolExecutor(max_workers=self.fetch_jobs, thread_name_prefix="bpm-fetch")
        with pool:
            for index, (provider, name, info) in enumerate(requests):
                future = pool.submit(self.get_or_fetch, provider, info, name, cancel)
                futures[future] = (index, info)

            for future in as_completed(futures):
                index, info = futures[future]
                try:
                    results[index] = FetchResult(info=info, artifact=future.result())
                except BpmError as e:
                    logger.warning("Fetch of %s failed: %s", info.filename, e)
                    results[index] = FetchResult(info=info, error=e)

        return [results[i] for i in range(len(requests))]

    def _remove(
        self,
        select: Callable[[CacheEntry], bool],
        include_in_use: bool = False,
    ) -> list[CacheEntry]:
        removed: list[CacheEntry] = []
        with self._in_use() as in_use, self._index_transaction() as index:
            for content_hash, entry in list(index.entries.items()):
                if not select(entry):
                    continue
                if content_hash in in_use and not include_in_use:
                    logger.debug("Keeping in-use cache entry %s", entry.filename)
                    continue
                index.entries.pop(content_hash)
                removed.append(entry)
            if removed:
                self._save_index(index)

        # Objects are deleted after the index no longer references them
        for entry in removed:
            self.object_path(entry.content_hash).unlink(missing_ok=True)
            logger.info("Evicted %s from cache", entry.filename)
        return removed

    def evict_expired(self, now: datetime | None = None) -> list[CacheEntry]:
        """Remove entries whose retention window has passed.

        Entries backing an installed package are kept even when expired.
        """
        moment = now or _now()
        return self._remove(lambda e: e.is_expired(moment, self.retention))

    def clean_temp(self, max_age: float = STALE_TEMP_SECONDS) -> list[Path]:
        """Remove abandoned temporary download files."""
        if not self.tmp_dir.is_dir():
            return []
        cutoff = time.time() - max_age
        removed: list[Path] = []
        for path in self.tmp_dir.glob(f"{TEMP_DOWNLOAD_PREFIX}*"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed.append(path)
                    logger.warning("Removed stale temporary download %s", path.name)
            except FileNotFoundError:
                continue
        return removed

    def clean(self, now: datetime | None = None) -> list[CacheEntry]:
        """Evict expired entries and abandoned temporary downloads."""
        removed = self.evict_expired(now)
        self.clean_temp()
        return removed

    def maybe_auto_clean(self) -> list[CacheEntry]:
        """Run :meth:`clean` if automatic cleaning is enabled.

        IO and lock failures are logged instead of raised.
        """
        if not self.auto_clean:
            return []
        try:
            return self.clean()
        except (TransportError, LockTimeoutError, OSError) as e:
            logger.warning("Automatic cache cleaning failed: %s", e)
            return []

    def clear(self, include_in_use: bool = False) -> list[CacheEntry]:
        """Remove every entry, keeping in-use entries unless ``include_in_use``."""
        removed = self._remove(lambda _e: True, include_in_use=include_in_use)
        self.clean_temp(max_age=0)
        return removed

    def evict(
        self, name: str, version: str | None = None, include_in_use: bool = False
    ) -> list[CacheEntry]:
        """Remove the entries of one package, optionally one version only."""

        def select(entry: CacheEntry) -> bool:
            return entry.name == name and (version is None or entry.version == version)

        return self._remove(select, include_in_use=include_in_use)

    def touch(
        self, name: str, version: str | None = None, retention: int | None = None
    ) -> list[CacheEntry]:
        """Refresh the access time of a package's entries.

        Args:
            name: Package name.
            version: Restrict to one version.
            retention: Per-entry retention override in seconds.

        Returns:
            Entries that were touched.
        """
        with self._index_transaction() as index:
            touched = index.matching(name, version)
            for entry in touched:
                entry.touched = _now()
                if retention is not None:
                    entry.retention = retention
            if touched:
                self._save_index(index)
        return touched
