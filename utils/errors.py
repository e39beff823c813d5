#!/usr/bin/env python3
"""Typed errors shared by the changelog pipeline.

Every error carries a short ``code`` for programmatic handling, a ``kind``
naming its family, an HTTP-style ``status`` for request dispatchers, and a
``context`` mapping describing what was attempted (mode, range, repo...).
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ChangelogError(Exception):
    """Base error with a typed code and structured context."""

    kind = "InternalError"
    status = 500
    default_code = "UNKNOWN"

    def __init__(self, message: str, code: Optional[str] = None, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "code": self.code,
            "message": str(self),
            "context": self.context,
        }


class RequestValidationError(ChangelogError):
    """Malformed or incomplete input; raised before any I/O."""

    kind = "ValidationError"
    status = 400
    default_code = "VALIDATION"


class NotFoundError(ChangelogError):
    """Upstream repo/tag/commit/window does not exist or yields no data."""

    kind = "NotFound"
    status = 404
    default_code = "NOT_FOUND"


class NoCommitsInWindowError(NotFoundError):
    default_code = "NO_COMMITS"


class TooManyPagesError(NotFoundError):
    """History scan hit its maximum depth before finding a boundary."""

    default_code = "TOO_MANY_PAGES"


class EmptyRangeError(NotFoundError):
    """The resolved range contains zero commits."""

    default_code = "EMPTY_RANGE"


class UpstreamError(ChangelogError):
    """Commit history provider transport, auth or 5xx failure."""

    kind = "UpstreamError"
    status = 502
    default_code = "UPSTREAM"


class GenerationError(ChangelogError):
    """Text generation provider unavailable or failed outright."""

    kind = "GenerationError"
    status = 503
    default_code = "GENERATION"


class OverlapConflictError(ChangelogError):
    """Candidate commits intersect a changelog already published in the same scope."""

    kind = "OverlapConflict"
    status = 409
    default_code = "OVERLAP"


class StorageError(ChangelogError):
    kind = "StorageError"
    status = 500
    default_code = "STORAGE"


__all__ = [
    "ChangelogError",
    "RequestValidationError",
    "NotFoundError",
    "NoCommitsInWindowError",
    "TooManyPagesError",
    "EmptyRangeError",
    "UpstreamError",
    "GenerationError",
    "OverlapConflictError",
    "StorageError",
]
