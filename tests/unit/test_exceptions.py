"""Tests for error classification."""

from __future__ import annotations

import pytest

from visitwise.exceptions import (
    AuthorizationError,
    ErrorCategory,
    ExecutionCancelledError,
    ExecutionFailedError,
    ExecutionTimedOutError,
    IngestionFailedError,
    IngestionTimedOutError,
    InputInvalidError,
    MalformedResponseError,
    PersistenceFailedError,
    PipelineError,
    SourceNotFoundError,
    SourceUnavailableError,
    to_pipeline_error,
)


@pytest.mark.parametrize(
    "exc, category, retryable",
    [
        (InputInvalidError("bad date"), ErrorCategory.VALIDATION, False),
        (AuthorizationError("not you"), ErrorCategory.AUTHENTICATION, False),
        (SourceNotFoundError("missing"), ErrorCategory.NOT_FOUND, False),
        (SourceUnavailableError("throttled"), ErrorCategory.TRANSIENT_SERVICE, True),
        (IngestionFailedError("x"), ErrorCategory.TRANSIENT_SERVICE, True),
        (ExecutionFailedError("x"), ErrorCategory.TRANSIENT_SERVICE, True),
        (ExecutionCancelledError("x"), ErrorCategory.TRANSIENT_SERVICE, True),
        (IngestionTimedOutError("x"), ErrorCategory.TIMEOUT, True),
        (ExecutionTimedOutError("x"), ErrorCategory.TIMEOUT, True),
        (MalformedResponseError("x", raw_response="junk"), ErrorCategory.INTERNAL, False),
        (PersistenceFailedError("x"), ErrorCategory.INTERNAL, False),
        (RuntimeError("unexpected"), ErrorCategory.INTERNAL, False),
    ],
)
def test_category_mapping(exc, category, retryable):
    error = to_pipeline_error(exc)
    assert error.category == category
    assert error.retryable is retryable


def test_caller_errors_keep_message():
    assert str(to_pipeline_error(InputInvalidError("An owner id is required"))) == "An owner id is required"


def test_internal_details_hidden():
    error = to_pipeline_error(ExecutionFailedError("Execution run-9 in thread-3 failed: server_error"))
    assert "thread-3" not in error.message
    assert "run-9" not in error.message


def test_pipeline_error_passthrough():
    original = PipelineError(ErrorCategory.NOT_FOUND, "gone")
    assert to_pipeline_error(original) is original


def test_to_dict():
    error = PipelineError(ErrorCategory.TIMEOUT, "slow", retryable=True)
    assert error.to_dict() == {"error": "slow", "category": "timeout", "retryable": True}
