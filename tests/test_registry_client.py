from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import requests

from cnsh_core.errors import DownloadError, ResolutionError
from cnsh_core.registry import RegistryClient, RegistryClientConfig, metadata_url


class _FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        payload: Any = None,
        chunks: tuple[bytes, ...] = (),
        reason: str = "OK",
    ) -> None:
        self.status_code = status_code
        self.payload = payload
        self.chunks = chunks
        self.reason = reason

    def json(self) -> Any:
        if self.payload is None:
            raise ValueError("no JSON body")
        return self.payload

    def iter_content(self, chunk_size: int = 1):
        del chunk_size
        yield from self.chunks

    def __enter__(self) -> _FakeResponse:
        return self

    def __exit__(self, *exc: object) -> None:
        return None


def _client(**overrides: Any) -> RegistryClient:
    config = RegistryClientConfig(base_url="https://registry.test", backoff_seconds=0.0, **overrides)
    return RegistryClient(config)


def test_metadata_url_encodes_scoped_names() -> None:
    assert metadata_url("https://registry.test/", "lodash") == "https://registry.test/lodash/latest"
    assert metadata_url("https://registry.test", "@types/node") == "https://registry.test/@types%2Fnode/latest"


def test_resolve_returns_version_and_tarball(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def _fake_get(url, **kwargs):
        del kwargs
        calls.append(url)
        return _FakeResponse(
            payload={
                "name": "lodash",
                "version": "4.17.21",
                "dist": {"tarball": "https://registry.test/lodash/-/lodash-4.17.21.tgz"},
            }
        )

    monkeypatch.setattr(requests, "get", _fake_get)
    resolution = _client().resolve("lodash")

    assert calls == ["https://registry.test/lodash/latest"]
    assert resolution.version == "4.17.21"
    assert resolution.tarball_url.endswith("lodash-4.17.21.tgz")


def test_resolve_unknown_package_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(requests, "get", lambda url, **kwargs: _FakeResponse(status_code=404, reason="Not Found"))
    with pytest.raises(ResolutionError, match="not found"):
        _client().resolve("no-such-package")


def test_resolve_network_failure_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fake_get(url, **kwargs):
        del url, kwargs
        raise requests.ConnectionError("dns failure")

    monkeypatch.setattr(requests, "get", _fake_get)
    with pytest.raises(ResolutionError, match="dns failure"):
        _client().resolve("lodash")


def test_resolve_without_tarball_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(requests, "get", lambda url, **kwargs: _FakeResponse(payload={"version": "1.0.0"}))
    with pytest.raises(ResolutionError, match="no dist.tarball"):
        _client().resolve("lodash")


def test_resolve_does_not_retry_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    attempts: list[str] = []

    def _fake_get(url, **kwargs):
        del kwargs
        attempts.append(url)
        return _FakeResponse(status_code=503, reason="Service Unavailable")

    monkeypatch.setattr(requests, "get", _fake_get)
    with pytest.raises(ResolutionError):
        _client().resolve("lodash")
    assert len(attempts) == 1


def test_download_streams_chunks(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(
        requests,
        "get",
        lambda url, **kwargs: _FakeResponse(chunks=(b"abc", b"", b"defg")),
    )
    target = tmp_path / "nested" / "demo.tgz"
    written = _client().download("https://registry.test/demo.tgz", target)

    assert written == 7
    assert target.read_bytes() == b"abcdefg"


def test_download_retries_server_errors_when_configured(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    responses = [
        _FakeResponse(status_code=502, reason="Bad Gateway"),
        _FakeResponse(chunks=(b"payload",)),
    ]

    monkeypatch.setattr(requests, "get", lambda url, **kwargs: responses.pop(0))
    target = tmp_path / "demo.tgz"
    written = _client(max_retries=1).download("https://registry.test/demo.tgz", target)

    assert written == len(b"payload")
    assert responses == []


def test_download_client_error_is_not_retried(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    attempts: list[str] = []

    def _fake_get(url, **kwargs):
        del kwargs
        attempts.append(url)
        return _FakeResponse(status_code=403, reason="Forbidden")

    monkeypatch.setattr(requests, "get", _fake_get)
    with pytest.raises(DownloadError, match="403"):
        _client(max_retries=3).download("https://registry.test/demo.tgz", tmp_path / "demo.tgz")
    assert len(attempts) == 1
