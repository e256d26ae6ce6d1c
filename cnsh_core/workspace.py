"""Install root layout helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from .errors import UsageError

LIB_DIRNAME = "cnsh_lib"
LOCK_FILENAME = "cnsh.lock"
MANIFEST_FILENAME = "package.json"

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9._-]+")


@dataclass(frozen=True)
class InstallLayout:
    """Paths for one install root.

    ``root`` is either the project directory or the per-user global directory.
    Packages live under ``root/cnsh_lib/<name>`` and the lock file describing
    them sits at ``root/cnsh.lock``.
    """

    root: Path

    @classmethod
    def project(cls, start_dir: Path) -> InstallLayout:
        return cls(root=start_dir.resolve())

    @classmethod
    def global_root(cls, global_dir: Path) -> InstallLayout:
        return cls(root=global_dir.expanduser().resolve())

    @property
    def lib_dir(self) -> Path:
        return self.root / LIB_DIRNAME

    @property
    def lock_path(self) -> Path:
        return self.root / LOCK_FILENAME

    @property
    def manifest_path(self) -> Path:
        return self.root / MANIFEST_FILENAME

    def package_dir(self, name: str) -> Path:
        validate_package_name(name)
        return self.lib_dir.joinpath(*name.split("/"))

    def archive_filename(self, name: str) -> str:
        validate_package_name(name)
        return f"{safe_filename(name)}.tgz"


def validate_package_name(name: str) -> None:
    value = (name or "").strip()
    if not value or value != name:
        raise UsageError(f"invalid package name: {name!r}")
    if "\\" in value or value.startswith("/"):
        raise UsageError(f"invalid package name: {name!r}")
    parts = value.split("/")
    if len(parts) > 2 or (len(parts) == 2 and not parts[0].startswith("@")):
        raise UsageError(f"invalid package name: {name!r}")
    for part in parts:
        if part in {"", ".", ".."}:
            raise UsageError(f"invalid package name: {name!r}")


def safe_filename(name: str) -> str:
    return _UNSAFE_CHARS_RE.sub("-", name).strip("-") or "pkg"
