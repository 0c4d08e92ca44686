"""
Error taxonomy for barcode resolution.

Source-level errors (TransportError, NotFoundError) are absorbed by the
Resolver. Only ResolutionFailed and ResolutionCancelled reach callers.
Cache errors are logged and swallowed.
"""

from typing import Dict, Optional


class ScanScoreError(Exception):
    """Base exception for the scanscore package."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


# =============================================================================
# Source Errors
# =============================================================================

class SourceError(ScanScoreError):
    """Raised by a catalog client when it cannot provide an answer."""

    def __init__(self, message: str, source: str, status_code: Optional[int] = None):
        self.source = source
        self.status_code = status_code
        super().__init__(message)


class TransportError(SourceError):
    """Network failure, timeout, server error or malformed response body."""


class NotFoundError(SourceError):
    """The catalog affirmatively has no record for the requested code."""


# =============================================================================
# Resolution Errors
# =============================================================================

class ResolutionFailed(ScanScoreError):
    """
    Every source was exhausted without producing a record.

    The message contains "not found" when at least one catalog affirmatively
    reported the code as missing. When all catalogs failed at the transport
    level the message reports them as unavailable instead, and ``not_found``
    is False.
    """

    def __init__(self, code: str, source_errors: Optional[Dict[str, SourceError]] = None):
        self.code = code
        self.source_errors = dict(source_errors or {})
        self.not_found = not self.source_errors or any(
            isinstance(err, NotFoundError) for err in self.source_errors.values()
        )
        if self.not_found:
            message = f"Product not found: {code}"
        else:
            failed = ", ".join(sorted(self.source_errors))
            message = f"All catalogs unavailable while resolving {code} ({failed})"
        super().__init__(message)


class ResolutionCancelled(ScanScoreError):
    """The caller abandoned the resolution; nothing was written to the cache."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Resolution cancelled: {code}")


# =============================================================================
# Cache Errors
# =============================================================================

class CacheError(ScanScoreError):
    """Base class for cache store failures."""


class CacheReadError(CacheError):
    """Reading from the cache database failed."""


class CacheWriteError(CacheError):
    """Writing to the cache database failed."""
