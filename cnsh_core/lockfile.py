"""Lock file store recording which packages are installed under a root."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import ParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageRecord:
    name: str
    tarball_url: str | None = None
    version: str | None = None

    def to_payload(self) -> dict[str, str]:
        payload: dict[str, str] = {}
        if self.tarball_url is not None:
            payload["tarballUrl"] = self.tarball_url
        if self.version is not None:
            payload["version"] = self.version
        return payload


class LockStore:
    """In-memory view of ``cnsh.lock`` with serialized mutations.

    ``load``/``upsert``/``remove``/``persist`` are the plain building blocks.
    Concurrent install and remove paths must use ``record`` and ``forget``,
    which hold the store's lock across the whole load-modify-persist cycle so
    two coroutines never overwrite each other's update. Separate processes
    writing the same file are still last-write-wins.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._records: dict[str, PackageRecord] = {}
        self._lock = asyncio.Lock()

    @property
    def records(self) -> dict[str, PackageRecord]:
        return dict(self._records)

    def __contains__(self, name: object) -> bool:
        return name in self._records

    def get(self, name: str) -> PackageRecord | None:
        return self._records.get(name)

    def names(self) -> list[str]:
        return sorted(self._records)

    def load(self) -> dict[str, PackageRecord]:
        if not self.path.exists():
            self._records = {}
            return self.records
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ParseError(f"unable to read lock file {self.path}: {exc}") from exc
        try:
            payload = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ParseError(f"malformed lock file {self.path}: {exc}") from exc
        self._records = _parse_records(payload, self.path)
        return self.records

    def upsert(self, name: str, tarball_url: str | None = None, version: str | None = None) -> PackageRecord:
        record = PackageRecord(name=name, tarball_url=tarball_url, version=version)
        self._records[name] = record
        return record

    def remove(self, name: str) -> bool:
        return self._records.pop(name, None) is not None

    def persist(self) -> None:
        document = {name: self._records[name].to_payload() for name in sorted(self._records)}
        text = yaml.safe_dump(document, default_flow_style=False, sort_keys=True, allow_unicode=True)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".cnsh-lock-", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("persisted %s entries to %s", len(document), self.path)

    async def record(self, name: str, tarball_url: str | None, version: str | None) -> PackageRecord:
        async with self._lock:
            return await asyncio.to_thread(self._record_sync, name, tarball_url, version)

    async def forget(self, name: str) -> bool:
        async with self._lock:
            return await asyncio.to_thread(self._forget_sync, name)

    def _record_sync(self, name: str, tarball_url: str | None, version: str | None) -> PackageRecord:
        self.load()
        record = self.upsert(name, tarball_url, version)
        self.persist()
        return record

    def _forget_sync(self, name: str) -> bool:
        self.load()
        removed = self.remove(name)
        if removed:
            self.persist()
        return removed


def _parse_records(payload: Any, path: Path) -> dict[str, PackageRecord]:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ParseError(f"malformed lock file {path}: expected a mapping of package names")
    records: dict[str, PackageRecord] = {}
    for raw_name, entry in payload.items():
        name = str(raw_name)
        if entry is None:
            entry = {}
        if not isinstance(entry, dict):
            raise ParseError(f"malformed lock file {path}: entry {name!r} is not a mapping")
        tarball_url = entry.get("tarballUrl")
        version = entry.get("version")
        for field_name, value in (("tarballUrl", tarball_url), ("version", version)):
            if value is not None and not isinstance(value, str):
                raise ParseError(f"malformed lock file {path}: {name}.{field_name} must be a string")
        records[name] = PackageRecord(name=name, tarball_url=tarball_url, version=version)
    return records
