"""Install/remove orchestration on top of the registry, archive and lock store."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

from .archive import extract_archive, fetch_archive
from .config import DEFAULT_MIN_ARCHIVE_BYTES
from .errors import CnshError
from .lockfile import LockStore
from .manifest import dependency_names, read_manifest
from .registry import PackageResolution
from .workspace import InstallLayout

logger = logging.getLogger(__name__)


class InstallState(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    RECORDING = "recording"
    INSTALLED = "installed"
    FAILED = "failed"


class RemoveState(str, Enum):
    DELETING = "deleting"
    REMOVED = "removed"
    NOT_INSTALLED = "not_installed"
    FAILED = "failed"


class PackageRegistry(Protocol):
    def resolve(self, name: str) -> PackageResolution: ...

    def download(self, url: str, out_path: Path) -> int: ...


@dataclass(frozen=True)
class InstallOutcome:
    name: str
    state: InstallState
    version: str | None = None
    tarball_url: str | None = None
    failed_at: InstallState | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is InstallState.INSTALLED


@dataclass(frozen=True)
class RemoveOutcome:
    name: str
    state: RemoveState
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is not RemoveState.FAILED


@dataclass(frozen=True)
class BulkOutcome:
    outcomes: tuple[InstallOutcome, ...] = ()
    nothing_to_do: bool = False

    @property
    def succeeded(self) -> list[str]:
        return [item.name for item in self.outcomes if item.ok]

    @property
    def failed(self) -> list[str]:
        return [item.name for item in self.outcomes if not item.ok]

    @property
    def ok(self) -> bool:
        return not self.failed


OutcomeHook = Callable[[InstallOutcome], None]


@dataclass
class _Attempt:
    """Filesystem state of one install attempt.

    Contents are assembled in ``staging_dir`` and only swapped into
    ``package_dir`` once extraction succeeded. A previous install is parked in
    ``backup_dir`` until the lock record is written.
    """

    package_dir: Path | None = None
    staging_dir: Path | None = None
    backup_dir: Path | None = None
    swapped: bool = False

    def swap_in(self) -> None:
        package_dir, staging_dir = self.package_dir, self.staging_dir
        if package_dir is None or staging_dir is None:
            raise RuntimeError("nothing staged to swap in")
        if package_dir.exists():
            self.backup_dir = Path(tempfile.mkdtemp(prefix=f".{package_dir.name}-previous-", dir=package_dir.parent))
            os.replace(package_dir, self.backup_dir / package_dir.name)
        try:
            os.replace(staging_dir, package_dir)
        except OSError:
            self._restore_backup()
            raise
        self.staging_dir = None
        self.swapped = True

    def discard_backup(self) -> None:
        if self.backup_dir is not None:
            shutil.rmtree(self.backup_dir, ignore_errors=True)
            self.backup_dir = None

    def roll_back(self) -> None:
        if self.staging_dir is not None:
            shutil.rmtree(self.staging_dir, ignore_errors=True)
            self.staging_dir = None
        if self.swapped and self.package_dir is not None:
            shutil.rmtree(self.package_dir, ignore_errors=True)
            self.swapped = False
        self._restore_backup()

    def _restore_backup(self) -> None:
        if self.backup_dir is None or self.package_dir is None:
            return
        parked = self.backup_dir / self.package_dir.name
        if parked.exists():
            os.replace(parked, self.package_dir)
        shutil.rmtree(self.backup_dir, ignore_errors=True)
        self.backup_dir = None


def _make_staging_dir(package_dir: Path) -> Path:
    package_dir.parent.mkdir(parents=True, exist_ok=True)
    return Path(tempfile.mkdtemp(prefix=f".{package_dir.name}-staging-", dir=package_dir.parent))


class PackageInstaller:
    """Runs per-package install sequences against one install root.

    Every lock file mutation goes through ``LockStore.record``/``forget`` so
    concurrent installs are serialized at the store. Blocking work runs in
    worker threads; the sequences themselves are coroutines on one loop.
    """

    def __init__(
        self,
        layout: InstallLayout,
        lock_store: LockStore,
        registry: PackageRegistry,
        *,
        min_archive_bytes: int = DEFAULT_MIN_ARCHIVE_BYTES,
        max_concurrency: int = 8,
        on_outcome: OutcomeHook | None = None,
    ) -> None:
        self.layout = layout
        self.lock_store = lock_store
        self.registry = registry
        self.min_archive_bytes = max(int(min_archive_bytes), 0)
        self.max_concurrency = max(int(max_concurrency), 1)
        self.on_outcome = on_outcome

    async def install_package(self, name: str) -> InstallOutcome:
        state = InstallState.UNRESOLVED
        attempt = _Attempt()
        resolution: PackageResolution | None = None
        try:
            attempt.package_dir = self.layout.package_dir(name)
            archive_name = self.layout.archive_filename(name)

            state = self._advance(name, InstallState.RESOLVING)
            resolution = await asyncio.to_thread(self.registry.resolve, name)

            attempt.staging_dir = await asyncio.to_thread(_make_staging_dir, attempt.package_dir)
            archive_path = attempt.staging_dir / archive_name

            state = self._advance(name, InstallState.DOWNLOADING)
            await asyncio.to_thread(
                fetch_archive,
                self.registry,
                resolution.tarball_url,
                archive_path,
                min_bytes=self.min_archive_bytes,
            )

            state = self._advance(name, InstallState.EXTRACTING)
            await asyncio.to_thread(extract_archive, archive_path, attempt.staging_dir)
            await asyncio.to_thread(archive_path.unlink, missing_ok=True)
            await asyncio.to_thread(attempt.swap_in)

            state = self._advance(name, InstallState.RECORDING)
            await self.lock_store.record(name, resolution.tarball_url, resolution.version)
        except CnshError as exc:
            outcome = await self._fail(name, state, str(exc), attempt, resolution)
        except Exception as exc:
            logger.debug("unexpected error while installing %s", name, exc_info=True)
            outcome = await self._fail(name, state, f"unexpected failure: {exc}", attempt, resolution)
        else:
            await asyncio.to_thread(attempt.discard_backup)
            self._advance(name, InstallState.INSTALLED)
            outcome = InstallOutcome(
                name=name,
                state=InstallState.INSTALLED,
                version=resolution.version,
                tarball_url=resolution.tarball_url,
            )
        if self.on_outcome is not None:
            self.on_outcome(outcome)
        return outcome

    async def remove_package(self, name: str) -> RemoveOutcome:
        try:
            package_dir = self.layout.package_dir(name)
            if not await asyncio.to_thread(package_dir.exists):
                if name in self.lock_store:
                    logger.debug("lock record for %s has no directory on disk", name)
                return RemoveOutcome(name=name, state=RemoveState.NOT_INSTALLED)

            logger.debug("%s: %s", name, RemoveState.DELETING.value)
            await asyncio.to_thread(shutil.rmtree, package_dir)
            await asyncio.to_thread(self._prune_empty_scope, package_dir)
            await self.lock_store.forget(name)
        except (CnshError, OSError) as exc:
            return RemoveOutcome(name=name, state=RemoveState.FAILED, error=str(exc))
        logger.debug("%s: %s", name, RemoveState.REMOVED.value)
        return RemoveOutcome(name=name, state=RemoveState.REMOVED)

    async def install_all(self, manifest_path: Path | None = None) -> BulkOutcome:
        """Install every dependency named in the manifest.

        Raises ``ManifestNotFoundError``/``ParseError`` for a missing or bad
        manifest. Individual package failures are collected, not raised.
        """

        manifest = await asyncio.to_thread(read_manifest, manifest_path or self.layout.manifest_path)
        names = dependency_names(manifest)
        if not names:
            return BulkOutcome(nothing_to_do=True)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(name: str) -> InstallOutcome:
            async with semaphore:
                return await self.install_package(name)

        logger.debug("installing %s dependencies (max_concurrency=%s)", len(names), self.max_concurrency)
        outcomes = await asyncio.gather(*(_bounded(name) for name in names))
        return BulkOutcome(outcomes=tuple(outcomes))

    async def _fail(
        self,
        name: str,
        state: InstallState,
        message: str,
        attempt: _Attempt,
        resolution: PackageResolution | None,
    ) -> InstallOutcome:
        logger.debug("%s: failed during %s: %s", name, state.value, message)
        await asyncio.to_thread(self._cleanup, attempt)
        return InstallOutcome(
            name=name,
            state=InstallState.FAILED,
            version=resolution.version if resolution else None,
            tarball_url=resolution.tarball_url if resolution else None,
            failed_at=state,
            error=message,
        )

    def _cleanup(self, attempt: _Attempt) -> None:
        attempt.roll_back()
        if attempt.package_dir is not None:
            self._prune_empty_scope(attempt.package_dir)

    def _prune_empty_scope(self, package_dir: Path) -> None:
        scope_dir = package_dir.parent
        if scope_dir == self.layout.lib_dir or not scope_dir.name.startswith("@"):
            return
        if scope_dir.is_dir() and not any(scope_dir.iterdir()):
            scope_dir.rmdir()

    @staticmethod
    def _advance(name: str, state: InstallState) -> InstallState:
        logger.debug("%s: %s", name, state.value)
        return state
