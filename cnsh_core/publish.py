"""Delegate publishing to the external registry tooling."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Sequence

from .errors import PublishError
from .workspace import MANIFEST_FILENAME

logger = logging.getLogger(__name__)


def publish_package(project_dir: Path, command: Sequence[str] = ("npm", "publish")) -> None:
    if not (project_dir / MANIFEST_FILENAME).exists():
        raise PublishError(f"{MANIFEST_FILENAME} not found in {project_dir}")
    if not command:
        raise PublishError("no publish command configured")

    logger.debug("publish command cwd=%s cmd=%s", project_dir, " ".join(command))
    try:
        result = subprocess.run(list(command), check=False, cwd=str(project_dir))
    except FileNotFoundError as exc:
        raise PublishError(f"{command[0]} CLI not found. Install it and ensure it is available in PATH.") from exc
    if result.returncode != 0:
        raise PublishError(f"{' '.join(command)} failed (exit={result.returncode})")
