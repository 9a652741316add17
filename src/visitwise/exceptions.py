"""Exception hierarchy for visitwise.

Internal errors name the pipeline stage that failed.  Callers never see them
directly: the pipeline entry point translates each one into a
:class:`PipelineError` carrying one of the :class:`ErrorCategory` values.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Caller-facing error categories."""

    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    TRANSIENT_SERVICE = "transient_service"
    INTERNAL = "internal"


class VisitwiseError(Exception):
    """Base exception for all visitwise errors."""

    category: ErrorCategory = ErrorCategory.INTERNAL
    retryable: bool = False


# ── Input / access ───────────────────────────────────────────────────


class InputInvalidError(VisitwiseError):
    """Missing or unparseable source reference or appointment identifier."""

    category = ErrorCategory.VALIDATION


class AuthorizationError(VisitwiseError):
    """Caller is not authenticated, or not allowed to act for the owner."""

    category = ErrorCategory.AUTHENTICATION


class SourceNotFoundError(VisitwiseError):
    """The source document does not exist in object storage."""

    category = ErrorCategory.NOT_FOUND


class SourceUnavailableError(VisitwiseError):
    """Object storage could not be reached or throttled the read."""

    category = ErrorCategory.TRANSIENT_SERVICE
    retryable = True


# ── Analysis job ─────────────────────────────────────────────────────


class AnalysisJobError(VisitwiseError):
    """Base for failures of the external analysis job."""

    category = ErrorCategory.TRANSIENT_SERVICE
    retryable = True


class IngestionFailedError(AnalysisJobError):
    """The analysis service rejected the artifact or reported an ingestion error."""


class IngestionTimedOutError(AnalysisJobError):
    """The artifact never became ready within the ingestion poll bound."""

    category = ErrorCategory.TIMEOUT


class ExecutionFailedError(AnalysisJobError):
    """The analysis run failed or produced no output."""


class ExecutionTimedOutError(AnalysisJobError):
    """The analysis run did not complete within the execution poll bound."""

    category = ErrorCategory.TIMEOUT


class ExecutionCancelledError(AnalysisJobError):
    """The analysis run was cancelled on the service side."""


# ── Output / persistence ─────────────────────────────────────────────


class MalformedResponseError(VisitwiseError):
    """Job output could not be decoded into the expected structure."""

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


class PersistenceFailedError(VisitwiseError):
    """A write failed after the external analysis had already succeeded."""


# ── Caller-facing ────────────────────────────────────────────────────


class PipelineError(Exception):
    """Classified error surfaced by :func:`visitwise.pipeline.VisitAnalysisPipeline.analyze`."""

    def __init__(self, category: ErrorCategory, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.category = category
        self.message = message
        self.retryable = retryable

    def to_dict(self) -> dict[str, object]:
        return {
            "error": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }


_CALLER_MESSAGES: dict[ErrorCategory, str] = {
    ErrorCategory.TIMEOUT: "The visit analysis took too long to finish. Please try again.",
    ErrorCategory.TRANSIENT_SERVICE: "A service needed for the analysis is temporarily unavailable. Please try again.",
    ErrorCategory.INTERNAL: "The visit summary could not be produced.",
}


def to_pipeline_error(exc: BaseException) -> PipelineError:
    """Translate any exception into a caller-facing :class:`PipelineError`.

    Validation, authentication and not-found errors keep their message since
    it describes the caller's own input.  Service and internal errors get a
    generic message so stage names stay internal.
    """
    if isinstance(exc, PipelineError):
        return exc
    if isinstance(exc, VisitwiseError):
        category = exc.category
        if category in _CALLER_MESSAGES:
            message = _CALLER_MESSAGES[category]
        else:
            message = str(exc)
        return PipelineError(category, message, retryable=exc.retryable)
    return PipelineError(ErrorCategory.INTERNAL, _CALLER_MESSAGES[ErrorCategory.INTERNAL])


__all__ = [
    "ErrorCategory",
    "VisitwiseError",
    "InputInvalidError",
    "AuthorizationError",
    "SourceNotFoundError",
    "SourceUnavailableError",
    "AnalysisJobError",
    "IngestionFailedError",
    "IngestionTimedOutError",
    "ExecutionFailedError",
    "ExecutionTimedOutError",
    "ExecutionCancelledError",
    "MalformedResponseError",
    "PersistenceFailedError",
    "PipelineError",
    "to_pipeline_error",
]
