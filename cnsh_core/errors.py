"""Error hierarchy for cnsh operations."""

from __future__ import annotations


class CnshError(RuntimeError):
    """Base class for every error cnsh reports to the user."""


class UsageError(CnshError):
    """Missing or invalid command line arguments."""


class ResolutionError(CnshError):
    """Registry lookup failed (network failure or unknown package)."""


class DownloadError(CnshError):
    """Archive transfer failed or produced an undersized file."""


class ExtractionError(CnshError):
    """Archive could not be unpacked."""


class ManifestNotFoundError(CnshError):
    """Bulk install requested without a project manifest."""


class ManifestExistsError(CnshError):
    """init refused to overwrite an existing manifest."""


class ParseError(CnshError):
    """A lock file or manifest exists but is not in the expected format."""


class PublishError(CnshError):
    """The external publish command failed."""
