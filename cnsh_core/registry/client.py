"""HTTP client for an npm-compatible package registry built on requests."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, TypeVar
from urllib.parse import quote

import requests

from cnsh_core.errors import DownloadError, ResolutionError

from .types import PackageResolution, RegistryClientConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CHUNK_SIZE = 64 * 1024


class _RetryableStatus(Exception):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code


def metadata_url(base_url: str, name: str) -> str:
    # scoped names keep their leading "@" but the slash is encoded
    return f"{base_url.rstrip('/')}/{quote(name, safe='@')}/latest"


class RegistryClient:
    """Resolves package names to tarballs and streams them to disk.

    Calls are blocking; the installer runs them in worker threads. Requests
    are attempted once unless ``max_retries`` is configured.
    """

    def __init__(self, config: RegistryClientConfig | None = None) -> None:
        self.config = config or RegistryClientConfig()

    def resolve(self, name: str) -> PackageResolution:
        url = metadata_url(self.config.base_url, name)
        try:
            payload = self._with_retries(lambda: self._get_json(url, name), f"resolve {name}")
        except (requests.RequestException, _RetryableStatus) as exc:
            raise ResolutionError(f"failed to fetch package metadata for {name}: {exc}") from exc

        dist = payload.get("dist") if isinstance(payload, dict) else None
        tarball = dist.get("tarball") if isinstance(dist, dict) else None
        if not isinstance(tarball, str) or not tarball.strip():
            raise ResolutionError(f"registry metadata for {name} has no dist.tarball")
        version = payload.get("version")
        return PackageResolution(
            name=name,
            version=str(version) if version is not None else None,
            tarball_url=tarball.strip(),
        )

    def download(self, url: str, out_path: Path) -> int:
        """Stream ``url`` into ``out_path`` and return the number of bytes written."""

        try:
            return self._with_retries(lambda: self._download_once(url, out_path), f"download {url}")
        except (requests.RequestException, _RetryableStatus, OSError) as exc:
            raise DownloadError(f"failed to download {url}: {exc}") from exc

    def _get_json(self, url: str, name: str) -> Any:
        r = requests.get(url, timeout=self.config.timeout_seconds, headers={"Accept": "application/json"})
        if r.status_code == 404:
            raise ResolutionError(f"package not found on registry: {name}")
        _raise_for_status(r)
        try:
            return r.json()
        except ValueError as exc:
            raise ResolutionError(f"invalid metadata payload for {name}") from exc

    def _download_once(self, url: str, out_path: Path) -> int:
        written = 0
        with requests.get(url, stream=True, timeout=self.config.timeout_seconds) as r:
            _raise_for_status(r)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            with open(out_path, "wb") as f:
                for chunk in r.iter_content(chunk_size=_CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        return written

    def _with_retries(self, action: Callable[[], T], label: str) -> T:
        retries = max(int(self.config.max_retries), 0) + 1
        backoff = max(float(self.config.backoff_seconds), 0.0)
        for attempt in range(1, retries + 1):
            try:
                logger.debug("registry request attempt=%s/%s %s", attempt, retries, label)
                return action()
            except (requests.RequestException, _RetryableStatus) as exc:
                if isinstance(exc, requests.HTTPError) or attempt >= retries:
                    raise
                logger.debug("retrying %s after error: %s", label, exc)
                time.sleep(min(backoff * attempt, 2.0))
        raise RuntimeError(f"{label} failed after retries")


def _raise_for_status(response: requests.Response) -> None:
    if response.status_code < 400:
        return
    detail = (response.reason or "").strip() or "request failed"
    if response.status_code >= 500:
        raise _RetryableStatus(response.status_code, detail)
    raise requests.HTTPError(f"HTTP {response.status_code}: {detail}", response=response)
