"""Registry client datatypes and configuration."""

from __future__ import annotations

from dataclasses import dataclass

from cnsh_core.config import DEFAULT_REGISTRY_URL


@dataclass(frozen=True)
class RegistryClientConfig:
    base_url: str = DEFAULT_REGISTRY_URL
    timeout_seconds: float = 30.0
    max_retries: int = 0
    backoff_seconds: float = 0.2


@dataclass(frozen=True)
class PackageResolution:
    name: str
    version: str | None
    tarball_url: str
