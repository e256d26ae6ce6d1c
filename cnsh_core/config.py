"""Configuration loading for cnsh (``cnsh.toml`` plus environment overrides)."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, TypeVar

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "cnsh.toml"
DEFAULT_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_GLOBAL_DIR = "~/.cnsh-global"
DEFAULT_MIN_ARCHIVE_BYTES = 1024

N = TypeVar("N", int, float)


@dataclass(frozen=True)
class CnshConfig:
    registry_url: str = DEFAULT_REGISTRY_URL
    timeout_seconds: float = 30.0
    max_retries: int = 0
    backoff_seconds: float = 0.2
    min_archive_bytes: int = DEFAULT_MIN_ARCHIVE_BYTES
    max_concurrency: int = 8
    global_dir: Path = Path(DEFAULT_GLOBAL_DIR).expanduser()
    publish_command: tuple[str, ...] = ("npm", "publish")


def load_config(start_dir: Path) -> CnshConfig:
    """Build the effective configuration for a working directory.

    Values come from ``<start_dir>/cnsh.toml`` when present, then
    ``CNSH_REGISTRY_URL`` / ``CNSH_GLOBAL_DIR`` override them.
    """

    payload = _read_config_file(start_dir / CONFIG_FILENAME)
    registry = _section(payload, "registry")
    install = _section(payload, "install")
    publish = _section(payload, "publish")

    registry_url = os.getenv("CNSH_REGISTRY_URL") or str(registry.get("url") or DEFAULT_REGISTRY_URL)
    global_dir = os.getenv("CNSH_GLOBAL_DIR") or str(install.get("global_dir") or DEFAULT_GLOBAL_DIR)

    command = publish.get("command")
    if isinstance(command, list) and command:
        publish_command = tuple(str(item) for item in command)
    else:
        publish_command = ("npm", "publish")

    return CnshConfig(
        registry_url=registry_url.strip().rstrip("/"),
        timeout_seconds=max(_number(registry, "timeout_seconds", 30.0, float), 1.0),
        max_retries=max(_number(registry, "max_retries", 0, int), 0),
        backoff_seconds=max(_number(registry, "backoff_seconds", 0.2, float), 0.0),
        min_archive_bytes=max(_number(install, "min_archive_bytes", DEFAULT_MIN_ARCHIVE_BYTES, int), 0),
        max_concurrency=max(_number(install, "max_concurrency", 8, int), 1),
        global_dir=Path(global_dir).expanduser(),
        publish_command=publish_command,
    )


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("ignoring unreadable config %s: %s", path, exc)
        return {}


def _section(payload: dict[str, Any], name: str) -> dict[str, Any]:
    section = payload.get(name)
    return section if isinstance(section, dict) else {}


def _number(section: dict[str, Any], key: str, default: N, kind: Callable[[Any], N]) -> N:
    value = section.get(key, default)
    try:
        if isinstance(value, bool):
            raise TypeError("booleans are not numbers")
        return kind(value)
    except (TypeError, ValueError):
        logger.warning("ignoring invalid %s = %r in %s, using %s", key, value, CONFIG_FILENAME, default)
        return default
