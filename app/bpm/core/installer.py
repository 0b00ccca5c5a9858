"""Install, update, and uninstall orchestration.

Every mutating operation runs inside an install database transaction.
An install moves through REQUESTED, RESOLVED, STAGED, VERIFIED and
INSTALLED, or ends in FAILED from any of them.

Files are first extracted into a staging directory under the target mount
point, then renamed into place one by one while a journal records every
change. If anything fails before the database is saved, the journal is
replayed backwards so that no file and no record of the package remains.
"""

import json
import logging
import os
import shutil
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx

from bpm.core.aggregator import ProviderFilter, ScanReport, scan_providers
from bpm.core.archive import hash_file, unpack
from bpm.core.cache import CachedArtifact, CacheManager
from bpm.core.config import BpmConfig
from bpm.core.database import InstallDatabase
from bpm.core.errors import (
    BpmError,
    ContractError,
    DatabaseError,
    IntegrityError,
    NotFoundError,
    TransportError,
)
from bpm.core.resolver import ResolvedPackage, resolve, resolve_in_channel
from bpm.models.outcome import (
    InstallOutcome,
    InstallRequest,
    InstallState,
    OutcomeKind,
    VerifyReport,
)
from bpm.models.package import FileType, PackageMeta
from bpm.models.record import InstallDatabaseDocument, InstalledPackageRecord, Versioning
from bpm.providers import create_provider
from bpm.providers.base import Provider
from bpm.utils.fileio import remove_empty_dirs

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".bpm-staging-"
BACKUP_PREFIX = ".bpm-backup-"
JOURNAL_NAME = "journal.jsonl"


def _exists(path: Path) -> bool:
    return path.is_symlink() or path.exists()


def _depth_order(paths: list[str]) -> list[str]:
    """Sort relative paths so that parents come before their children."""
    return sorted(paths, key=lambda p: (p.count("/"), p))


@dataclass
class _Journal:
    """Changes made while moving staged files into a mount point.

    Every change is appended to ``journal.jsonl`` in the backup directory
    before it is made, so an install interrupted by a crash can be undone
    by the next transaction (see :meth:`Installer._recover`).
    """

    backup_dir: Path
    created_dirs: list[Path] = field(default_factory=list)
    added: list[Path] = field(default_factory=list)
    replaced: list[tuple[Path, Path]] = field(default_factory=list)
    header: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def begin(
        cls, root: Path, meta: PackageMeta, content_hash: str, replaces: str | None
    ) -> "_Journal":
        journal = cls(backup_dir=Path(tempfile.mkdtemp(prefix=BACKUP_PREFIX, dir=root)))
        journal.header = {
            "name": meta.name,
            "version": meta.version,
            "content_hash": content_hash,
            "replaces": replaces,
        }
        journal._log({"op": "begin", **journal.header})
        return journal

    @classmethod
    def load(cls, backup_dir: Path) -> "_Journal":
        """Rebuild a journal from its log; a torn final line is ignored."""
        journal = cls(backup_dir=backup_dir)
        try:
            lines = (backup_dir / JOURNAL_NAME).read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return journal
        for line in lines:
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping damaged journal line in %s", backup_dir)
                continue
            op = entry.get("op")
            if op == "begin":
                journal.header = {k: v for k, v in entry.items() if k != "op"}
            elif op == "mkdir":
                journal.created_dirs.append(Path(entry["path"]))
            elif op == "add":
                journal.added.append(Path(entry["path"]))
            elif op == "replace":
                journal.replaced.append((Path(entry["path"]), Path(entry["backup"])))
        return journal

    def _log(self, entry: dict[str, Any]) -> None:
        with (self.backup_dir / JOURNAL_NAME).open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry) + "\n")
            f.flush()
            os.fsync(f.fileno())

    def will_mkdir(self, path: Path) -> None:
        self._log({"op": "mkdir", "path": str(path)})
        self.created_dirs.append(path)

    def will_add(self, path: Path) -> None:
        self._log({"op": "add", "path": str(path)})
        self.added.append(path)

    def will_replace(self, path: Path, backup: Path) -> None:
        self._log({"op": "replace", "path": str(path), "backup": str(backup)})
        self.replaced.append((path, backup))

    def rollback(self) -> None:
        # Entries are logged before they happen, so any of them may be unapplied.
        for path in reversed(self.added):
            if _exists(path) and not path.is_dir():
                path.unlink()
        for original, backup in reversed(self.replaced):
            if _exists(backup):
                os.replace(backup, original)
        for directory in reversed(self.created_dirs):
            if not directory.is_dir():
                continue
            try:
                directory.rmdir()
            except OSError:
                logger.warning("Could not remove %s during rollback", directory)

    def discard(self) -> None:
        shutil.rmtree(self.backup_dir, ignore_errors=True)


class Installer:
    """Drives install, update, uninstall, and verification of packages.

    Args:
        config: Loaded configuration.
        providers: Providers in priority order.
        database: Install database.
        cache: Artifact cache.
        provider_filter: Restricts which providers are scanned.
    """

    def __init__(
        self,
        config: BpmConfig,
        providers: list[Provider],
        database: InstallDatabase,
        cache: CacheManager,
        provider_filter: ProviderFilter | None = None,
    ) -> None:
        self.config = config
        self.providers = providers
        self.database = database
        self.cache = cache
        self.provider_filter = provider_filter or ProviderFilter()
        self._scan: ScanReport | None = None
        self._scan_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: BpmConfig,
        provider_filter: ProviderFilter | None = None,
        client: httpx.Client | None = None,
    ) -> "Installer":
        """Build an installer and its collaborators from configuration."""
        providers = [
            create_provider(name, entry.path, client=client, timeout=config.scan.timeout)
            for name, entry in config.providers.items()
        ]
        database = InstallDatabase(config.database, lockfile=config.lock_path)
        cache = CacheManager(
            config.cache.dir,
            database=database,
            retention=config.cache.retention,
            auto_clean=config.cache.auto_clean,
            fetch_jobs=config.cache.fetch_jobs,
            fetch_timeout=config.scan.timeout,
        )
        return cls(config, providers, database, cache, provider_filter=provider_filter)

    def close(self) -> None:
        """Release provider resources."""
        for provider in self.providers:
            provider.close()

    def scan(self, refresh: bool = False) -> ScanReport:
        """Scan the selected providers, reusing the previous scan unless ``refresh``."""
        with self._scan_lock:
            if self._scan is None or refresh:
                self._scan = scan_providers(
                    self.provider_filter.apply(self.providers),
                    threads=self.config.scan.threads,
                    timeout=self.config.scan.timeout,
                )
            return self._scan

    def provider(self, name: str) -> Provider:
        """Return a configured provider by name.

        Raises:
            NotFoundError: If no provider has that name.
        """
        for provider in self.providers:
            if provider.name == name:
                return provider
        msg = f"Provider '{name}' is not configured"
        raise NotFoundError(msg)

    def resolve(self, name: str, selector: str | None = None) -> ResolvedPackage:
        """Resolve a package against the current scan."""
        return resolve(self.scan().result, name, selector)

    def _fetch(self, resolved: ResolvedPackage, cancel: threading.Event | None) -> CachedArtifact:
        provider = self.provider(resolved.info.provider)
        return self.cache.get_or_fetch(provider, resolved.info, resolved.name, cancel=cancel)

    def _mount(self, meta: PackageMeta, target: str | None) -> tuple[str, Path]:
        mount = target or meta.mount or self.config.default_mount
        path = self.config.mount_path(mount)
        if path is None:
            msg = (
                f"Mount point '{mount}' used by {meta.name} {meta.version} "
                "is not declared in configuration"
            )
            raise ContractError(msg)
        return mount, path

    @contextmanager
    def _transaction(self) -> Iterator[InstallDatabaseDocument]:
        """Database transaction that first repairs interrupted installs."""
        with self.database.transaction() as doc:
            self._recover(doc)
            yield doc

    def _recover(self, doc: InstallDatabaseDocument) -> None:
        """Undo or finish installs that were interrupted by a crash.

        A leftover journal whose install never reached the database is
        rolled back; one whose record was saved only needs its backups
        discarded. Reinstalling identical bytes is always rolled back, since
        the restored files match the record either way. Leftover staging
        directories are removed.
        """
        roots = {Path(record.location) for record in doc.packages.values()}
        roots.update(
            path for name in self.config.mount if (path := self.config.mount_path(name))
        )
        for root in sorted(roots):
            if not root.is_dir():
                continue
            for staging in root.glob(f"{STAGING_PREFIX}*"):
                logger.warning("Removing leftover staging directory %s", staging)
                shutil.rmtree(staging, ignore_errors=True)
            for backup_dir in root.glob(f"{BACKUP_PREFIX}*"):
                journal = _Journal.load(backup_dir)
                record = doc.get(journal.header.get("name", ""))
                content_hash = journal.header.get("content_hash")
                saved = (
                    record is not None
                    and record.content_hash == content_hash
                    and record.location == str(root)
                    and journal.header.get("replaces") != content_hash
                )
                if not saved:
                    logger.warning(
                        "Rolling back interrupted install of %s %s in %s",
                        journal.header.get("name", "?"),
                        journal.header.get("version", "?"),
                        root,
                    )
                    try:
                        journal.rollback()
                    except OSError as e:
                        msg = f"Cannot roll back interrupted install in {backup_dir}: {e}"
                        raise TransportError(msg) from e
                journal.discard()

    def _check_conflicts(
        self,
        doc: InstallDatabaseDocument,
        meta: PackageMeta,
        mount: str,
        root: Path,
        force: bool,
    ) -> None:
        for relative, info in meta.files.items():
            dest = root / relative
            if not _exists(dest):
                continue
            if info.is_dir:
                if dest.is_dir() and not dest.is_symlink():
                    continue
                msg = f"Cannot create directory {dest}: a file is in the way"
                raise ContractError(msg)
            if dest.is_dir() and not dest.is_symlink():
                msg = f"Cannot install {dest}: a directory is in the way"
                raise ContractError(msg)

            owner = doc.owner_of(mount, relative)
            if owner is not None and owner.name != meta.name:
                msg = f"{dest} is owned by package '{owner.name}'"
                raise ContractError(msg)
            if owner is None and not force:
                msg = f"{dest} already exists and is not owned by any package"
                raise ContractError(msg)

    def _commit(
        self,
        staging: Path,
        root: Path,
        meta: PackageMeta,
        content_hash: str,
        replaces: str | None = None,
    ) -> _Journal:
        """Move staged entries into ``root``, journaling every change.

        On any failure, interrupts included, the journal is rolled back
        before the exception propagates.
        """
        journal = _Journal.begin(root, meta, content_hash, replaces)
        try:
            for relative in _depth_order(list(meta.files)):
                info = meta.files[relative]
                dest = root / relative
                if info.is_dir:
                    if not dest.is_dir():
                        journal.will_mkdir(dest)
                        dest.mkdir(parents=True)
                        shutil.copystat(staging / relative, dest)
                    continue

                if _exists(dest):
                    backup = journal.backup_dir / relative
                    backup.parent.mkdir(parents=True, exist_ok=True)
                    journal.will_replace(dest, backup)
                    os.replace(dest, backup)
                dest.parent.mkdir(parents=True, exist_ok=True)
                journal.will_add(dest)
                os.replace(staging / relative, dest)
        except BaseException:
            journal.rollback()
            journal.discard()
            raise
        return journal

    def _remove_stale(
        self, previous: InstalledPackageRecord, record: InstalledPackageRecord
    ) -> None:
        """Remove files of ``previous`` that ``record`` no longer installs."""
        same_root = previous.location == record.location
        root = Path(previous.location)
        stale = {p: i for p, i in previous.files.items() if not (same_root and p in record.files)}

        for relative, info in stale.items():
            if info.is_dir:
                continue
            path = root / relative
            if _exists(path) and not (path.is_dir() and not path.is_symlink()):
                path.unlink()
        remove_empty_dirs(root, [p for p, i in stale.items() if i.is_dir])

    def _apply(
        self,
        doc: InstallDatabaseDocument,
        name: str,
        artifact: CachedArtifact,
        target: str | None,
        versioning: Versioning,
        force: bool,
        states: list[InstallState],
    ) -> InstalledPackageRecord:
        """Verify, extract and commit an artifact, then save its record."""
        meta = artifact.meta
        if meta.name != name:
            msg = f"Artifact {artifact.entry.filename} contains '{meta.name}', not '{name}'"
            raise ContractError(msg)
        mount, root = self._mount(meta, target)
        states.append(InstallState.VERIFIED)

        previous = doc.get(name)
        staging: Path | None = None
        try:
            root.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=root))
            unpack(artifact.path, staging, meta)
            self._check_conflicts(doc, meta, mount, root, force)
            replaces = (
                previous.content_hash
                if previous is not None and previous.location == str(root)
                else None
            )
            journal = self._commit(staging, root, meta, artifact.entry.content_hash, replaces)
        except OSError as e:
            msg = f"Failed to install {name} into {root}: {e}"
            raise TransportError(msg) from e
        finally:
            if staging is not None:
                shutil.rmtree(staging, ignore_errors=True)

        record = InstalledPackageRecord(
            name=name,
            version=meta.version,
            mount=mount,
            location=str(root),
            files=meta.files,
            content_hash=artifact.entry.content_hash,
            artifact=artifact.entry.filename,
            provider=artifact.entry.provider,
            installed_at=datetime.now(UTC),
            versioning=versioning,
        )
        doc.put(record)
        try:
            self.database.save(doc)
        except BaseException:
            journal.rollback()
            raise
        finally:
            journal.discard()

        if previous is not None:
            self._remove_stale(previous, record)
        states.append(InstallState.INSTALLED)
        return record

    def _run(
        self,
        name: str,
        artifact: CachedArtifact,
        target: str | None,
        versioning: Versioning,
        force: bool,
        states: list[InstallState],
    ) -> InstallOutcome:
        with self._transaction() as doc:
            previous = doc.get(name)
            record = self._apply(doc, name, artifact, target, versioning, force, states)

        if previous is None:
            logger.info("Installed %s %s into %s", name, record.version, record.location)
            kind = OutcomeKind.INSTALLED
        else:
            logger.info("Updated %s %s -> %s", name, previous.version, record.version)
            kind = OutcomeKind.UPDATED
        self.cache.maybe_auto_clean()
        return InstallOutcome(name=name, kind=kind, record=record, previous=previous, states=states)

    def install(
        self, request: InstallRequest, cancel: threading.Event | None = None
    ) -> InstallOutcome:
        """Install one package.

        Already installed packages at the resolved version are reported as
        up to date unless ``request.force`` is set. Resolving a different
        version of an installed package replaces it.

        Raises:
            DatabaseError: If the install database is corrupt.
        """
        states = [InstallState.REQUESTED]
        try:
            current = self.database.read().get(request.name)

            if request.path is not None:
                artifact = self.cache.store_file(request.path)
                versioning = Versioning()
                states.append(InstallState.RESOLVED)
                installed = (
                    current is not None and current.content_hash == artifact.entry.content_hash
                )
            else:
                resolved = self.resolve(request.name, request.selector)
                versioning = resolved.versioning
                states.append(InstallState.RESOLVED)
                installed = current is not None and current.version == resolved.info.version.raw
                if not installed or request.force:
                    artifact = self._fetch(resolved, cancel)

            if current is not None and installed and not request.force:
                return InstallOutcome(
                    name=request.name,
                    kind=OutcomeKind.UP_TO_DATE,
                    record=current,
                    message=f"{request.name} {current.version} is already installed",
                    states=states,
                )

            states.append(InstallState.STAGED)
            return self._run(
                request.name, artifact, request.target, versioning, request.force, states
            )
        except DatabaseError:
            raise
        except BpmError as e:
            logger.info("Install of %s failed: %s", request, e)
            return InstallOutcome.from_error(request.name, e, states)

    def install_many(
        self, requests: list[InstallRequest], cancel: threading.Event | None = None
    ) -> list[InstallOutcome]:
        """Install several packages, continuing past individual failures."""
        return [self.install(request, cancel=cancel) for request in requests]

    def update(
        self,
        name: str,
        selector: str | None = None,
        force: bool = False,
        cancel: threading.Event | None = None,
    ) -> InstallOutcome:
        """Update an installed package.

        Without a selector the package moves to the greatest available
        version, or the greatest version of its pinned channel. A
        version-pinned package stays put unless ``force`` is set. A
        selector forces that version or channel even if it is not newer.

        Raises:
            DatabaseError: If the install database is corrupt.
        """
        states = [InstallState.REQUESTED]
        try:
            current = self.database.read().get(name)
            if current is None:
                return InstallOutcome(
                    name=name,
                    kind=OutcomeKind.NOT_INSTALLED,
                    message=f"{name} is not installed",
                    states=states,
                )

            policy = current.versioning
            if selector is None and policy.pinned_to_version and not force:
                return InstallOutcome(
                    name=name,
                    kind=OutcomeKind.UP_TO_DATE,
                    record=current,
                    message=f"{name} is pinned to {current.version}",
                    states=states,
                )

            if selector is not None:
                resolved = self.resolve(name, selector)
                versioning = resolved.versioning
            elif policy.pinned_to_channel and policy.channel:
                resolved = resolve_in_channel(self.scan().result, name, policy.channel)
                versioning = policy
            else:
                resolved = self.resolve(name)
                versioning = policy
            states.append(InstallState.RESOLVED)

            candidate = resolved.info.version
            if candidate.raw == current.version:
                newer = force
            else:
                newer = selector is not None or force or candidate > current.parsed_version
            if not newer:
                return InstallOutcome(
                    name=name,
                    kind=OutcomeKind.UP_TO_DATE,
                    record=current,
                    message=f"{name} {current.version} is up to date",
                    states=states,
                )

            artifact = self._fetch(resolved, cancel)
            states.append(InstallState.STAGED)
            return self._run(name, artifact, current.mount, versioning, force, states)
        except DatabaseError:
            raise
        except BpmError as e:
            logger.info("Update of %s failed: %s", name, e)
            return InstallOutcome.from_error(name, e, states)

    def update_all(
        self, force: bool = False, cancel: threading.Event | None = None
    ) -> list[InstallOutcome]:
        """Update every installed package."""
        return [
            self.update(record.name, force=force, cancel=cancel)
            for record in self.list_installed()
        ]

    def uninstall(self, name: str) -> InstallOutcome:
        """Remove an installed package.

        Files are removed first, then the now-empty directories the package
        introduced, then the record. Uninstalling a package that is not
        installed is reported as NOT_INSTALLED and changes nothing.

        Raises:
            DatabaseError: If the install database is corrupt.
        """
        states = [InstallState.REQUESTED]
        try:
            with self._transaction() as doc:
                record = doc.get(name)
                if record is None:
                    return InstallOutcome(
                        name=name,
                        kind=OutcomeKind.NOT_INSTALLED,
                        message=f"{name} is not installed",
                        states=states,
                    )

                root = Path(record.location)
                try:
                    for relative, info in record.files.items():
                        if info.is_dir:
                            continue
                        path = root / relative
                        if path.is_dir() and not path.is_symlink():
                            logger.warning("Not removing directory %s: expected a file", path)
                            continue
                        path.unlink(missing_ok=True)
                    remove_empty_dirs(root, [p for p, i in record.files.items() if i.is_dir])
                except OSError as e:
                    msg = f"Failed to remove files of {name} from {root}: {e}"
                    raise TransportError(msg) from e

                doc.remove(name)
                self.database.save(doc)
        except DatabaseError:
            raise
        except BpmError as e:
            logger.info("Uninstall of %s failed: %s", name, e)
            return InstallOutcome.from_error(name, e, states)

        logger.info("Uninstalled %s %s from %s", name, record.version, record.location)
        if self.config.cache.touch_on_uninstall:
            self.cache.touch(name, record.version)
        self.cache.maybe_auto_clean()
        states.append(InstallState.REMOVED)
        return InstallOutcome(name=name, kind=OutcomeKind.REMOVED, previous=record, states=states)

    def _artifact_for(self, record: InstalledPackageRecord) -> CachedArtifact:
        artifact = self.cache.get(record.content_hash)
        if artifact is not None:
            return artifact
        if record.provider is None:
            msg = f"Artifact {record.artifact} of {record.name} is no longer cached"
            raise NotFoundError(msg)

        resolved = self.resolve(record.name, record.version)
        artifact = self._fetch(resolved, cancel=None)
        if artifact.entry.content_hash != record.content_hash:
            msg = f"Provider now serves different bytes for {record.name} {record.version}"
            raise IntegrityError(msg)
        return artifact

    def verify(self, name: str, restore: bool = False) -> VerifyReport:
        """Check installed files of a package against its record.

        Args:
            name: Package name.
            restore: Re-extract missing or modified entries from the artifact.

        Raises:
            NotFoundError: If the package is not installed, or the artifact
                needed for restoring is unavailable.
            TransportError: If restored entries cannot be written.
        """
        record = self.database.read().get(name)
        if record is None:
            msg = f"{name} is not installed"
            raise NotFoundError(msg)

        report = self._inspect(record)
        broken = report.missing + report.modified
        if not restore or not broken:
            return report

        artifact = self._artifact_for(record)
        root = Path(record.location)
        with self._transaction():
            try:
                staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=root))
            except OSError as e:
                msg = f"Cannot restore {name} into {root}: {e}"
                raise TransportError(msg) from e
            try:
                unpack(artifact.path, staging, artifact.meta, only=broken)
                for relative in _depth_order(broken):
                    dest = root / relative
                    if record.files[relative].is_dir:
                        dest.mkdir(parents=True, exist_ok=True)
                    else:
                        dest.parent.mkdir(parents=True, exist_ok=True)
                        if _exists(dest) and not dest.is_dir():
                            dest.unlink()
                        os.replace(staging / relative, dest)
                    report.restored.append(relative)
            except OSError as e:
                msg = f"Cannot restore {name} into {root}: {e}"
                raise TransportError(msg) from e
            finally:
                shutil.rmtree(staging, ignore_errors=True)

        logger.info("Restored %d path(s) of %s", len(report.restored), name)
        return report

    def _inspect(self, record: InstalledPackageRecord) -> VerifyReport:
        report = VerifyReport(name=record.name)
        root = Path(record.location)
        for relative in sorted(record.files):
            info = record.files[relative]
            path = root / relative
            if info.type == FileType.DIR:
                target = report.ok if path.is_dir() else report.missing
            elif info.type == FileType.SYMLINK:
                if not path.is_symlink():
                    target = report.missing
                else:
                    target = report.ok if os.readlink(path) == info.target else report.modified
            elif not path.is_file():
                target = report.missing
            else:
                target = report.ok if hash_file(path) == info.hash else report.modified
            target.append(relative)
        return report

    def pin(self, name: str, channel: str | None = None) -> InstalledPackageRecord:
        """Pin a package to its installed version, or to a channel.

        Raises:
            NotFoundError: If the package is not installed.
        """
        with self._transaction() as doc:
            record = doc.get(name)
            if record is None:
                msg = f"{name} is not installed"
                raise NotFoundError(msg)
            if channel is None:
                record.versioning = Versioning(
                    pinned_to_version=True, channel=record.versioning.channel
                )
            else:
                record.versioning = Versioning(pinned_to_channel=True, channel=channel)
            self.database.save(doc)
        logger.info("Pinned %s to %s", name, channel or record.version)
        return record

    def unpin(self, name: str) -> InstalledPackageRecord:
        """Remove version and channel pins from a package.

        Raises:
            NotFoundError: If the package is not installed.
        """
        with self._transaction() as doc:
            record = doc.get(name)
            if record is None:
                msg = f"{name} is not installed"
                raise NotFoundError(msg)
            record.versioning = Versioning(channel=record.versioning.channel)
            self.database.save(doc)
        logger.info("Unpinned %s", name)
        return record

    def list_installed(self) -> list[InstalledPackageRecord]:
        """Return installed packages sorted by name."""
        doc = self.database.read()
        return [doc.packages[name] for name in sorted(doc.packages)]

    def query_owner(self, path: Path) -> tuple[InstalledPackageRecord, str] | None:
        """Find which installed package owns a file.

        Returns:
            Tuple of (record, path relative to its mount), or None.
        """
        absolute = Path(os.path.abspath(path))
        for record in self.list_installed():
            try:
                relative = absolute.relative_to(record.location).as_posix()
            except ValueError:
                continue
            if relative in record.files:
                return record, relative
        return None

    def query_files(self, name: str) -> list[Path]:
        """Return absolute paths of the entries installed by a package.

        Raises:
            NotFoundError: If the package is not installed.
        """
        record = self.database.read().get(name)
        if record is None:
            msg = f"{name} is not installed"
            raise NotFoundError(msg)
        root = Path(record.location)
        return [root / relative for relative in sorted(record.files)]
