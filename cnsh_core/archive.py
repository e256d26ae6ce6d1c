"""Fetch and unpack package archives."""

from __future__ import annotations

import logging
import tarfile
from pathlib import Path
from typing import Protocol

from .errors import CnshError, DownloadError, ExtractionError

logger = logging.getLogger(__name__)


class ArchiveDownloader(Protocol):
    def download(self, url: str, out_path: Path) -> int: ...


def fetch_archive(client: ArchiveDownloader, url: str, out_path: Path, *, min_bytes: int) -> int:
    """Download ``url`` to ``out_path`` and reject suspiciously small files.

    The size floor only catches truncated or error-page downloads; it says
    nothing about the archive's integrity.
    """

    try:
        client.download(url, out_path)
    except CnshError:
        out_path.unlink(missing_ok=True)
        raise
    except Exception as exc:
        out_path.unlink(missing_ok=True)
        raise DownloadError(f"failed to download {url}: {exc}") from exc

    if not out_path.exists():
        raise DownloadError(f"download of {url} produced no file")
    size = out_path.stat().st_size
    if size < min_bytes:
        out_path.unlink(missing_ok=True)
        raise DownloadError(
            f"downloaded archive is too small ({size} bytes < {min_bytes}), indicating a possible issue"
        )
    logger.debug("fetched %s bytes from %s", size, url)
    return size


def extract_archive(archive_path: Path, dest: Path) -> None:
    dest.mkdir(parents=True, exist_ok=True)
    try:
        with tarfile.open(archive_path, "r:*") as tf:
            _safe_tar_extract(tf, dest)
    except ExtractionError:
        raise
    except (tarfile.TarError, OSError, EOFError) as exc:
        raise ExtractionError(f"unable to extract {archive_path.name}: {exc}") from exc


def _safe_tar_extract(tf: tarfile.TarFile, dest: Path) -> None:
    root = dest.resolve()
    for member in tf.getmembers():
        target = (root / member.name).resolve()
        if target != root and root not in target.parents:
            raise ExtractionError(f"unsafe archive member path: {member.name}")
        if member.issym() or member.islnk():
            base = target.parent if member.issym() else root
            link_target = (base / member.linkname).resolve()
            if root not in link_target.parents:
                raise ExtractionError(f"unsafe archive link: {member.name} -> {member.linkname}")
    tf.extractall(root, filter="data")
