"""npm-compatible registry client for cnsh."""

from .client import RegistryClient, metadata_url
from .types import PackageResolution, RegistryClientConfig

__all__ = [
    "PackageResolution",
    "RegistryClient",
    "RegistryClientConfig",
    "metadata_url",
]
