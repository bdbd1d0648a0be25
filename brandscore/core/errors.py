"""Error taxonomy for the scoring pipeline.

ProviderUnavailable and MalformedResponse are recovered locally by the
fallback chains; they only reach a caller once a whole chain is exhausted.
RecordValidationError is fatal for a single record, never for a batch.
A cache miss is not an error: caches return None.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Error classification reported in batch summaries."""

    PROVIDER_UNAVAILABLE = "provider_unavailable"  # timeout / network / quota
    MALFORMED_RESPONSE = "malformed_response"  # JSON or schema failure
    VALIDATION_ERROR = "validation_error"  # input record unusable
    UNEXPECTED_ERROR = "unexpected_error"


class ScoringError(Exception):
    """Base class for all pipeline errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED_ERROR


class ProviderUnavailable(ScoringError):
    """A provider timed out, refused the request or ran out of quota."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE

    def __init__(self, message: str, vendor: str = "", status_code: int = 0):
        super().__init__(message)
        self.vendor = vendor
        self.status_code = status_code


class MalformedResponse(ScoringError):
    """A provider answered, but the payload could not be parsed or validated."""

    kind = ErrorKind.MALFORMED_RESPONSE

    def __init__(self, message: str, vendor: str = "", raw: str = ""):
        super().__init__(message)
        self.vendor = vendor
        self.raw = raw[:500]


class RecordValidationError(ScoringError):
    """A raw answer record is missing required fields."""

    kind = ErrorKind.VALIDATION_ERROR


class ConsolidatedAnalysisError(ScoringError):
    """The single-call analysis failed; the caller must take the fallback path."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNEXPECTED_ERROR):
        super().__init__(message)
        self.kind = kind


def error_kind_of(exc: BaseException) -> ErrorKind:
    """Map any exception to its reported ErrorKind."""
    if isinstance(exc, ScoringError):
        return exc.kind
    if isinstance(exc, TimeoutError):
        return ErrorKind.PROVIDER_UNAVAILABLE
    return ErrorKind.UNEXPECTED_ERROR
