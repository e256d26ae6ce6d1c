"""Core package cache and lock file model for cnsh."""

from .config import CnshConfig, load_config
from .errors import (
    CnshError,
    DownloadError,
    ExtractionError,
    ManifestExistsError,
    ManifestNotFoundError,
    ParseError,
    PublishError,
    ResolutionError,
    UsageError,
)
from .installer import (
    BulkOutcome,
    InstallOutcome,
    InstallState,
    PackageInstaller,
    RemoveOutcome,
    RemoveState,
)
from .lockfile import LockStore, PackageRecord
from .workspace import InstallLayout

__version__ = "0.3.0"

__all__ = [
    "BulkOutcome",
    "CnshConfig",
    "CnshError",
    "DownloadError",
    "ExtractionError",
    "InstallLayout",
    "InstallOutcome",
    "InstallState",
    "LockStore",
    "ManifestExistsError",
    "ManifestNotFoundError",
    "PackageInstaller",
    "PackageRecord",
    "ParseError",
    "PublishError",
    "RemoveOutcome",
    "RemoveState",
    "ResolutionError",
    "UsageError",
    "__version__",
    "load_config",
]
