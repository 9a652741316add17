"""Startup validation: fail-fast on critical misconfigurations."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from visitwise.core.config import AppSettings

log = logging.getLogger(__name__)


def validate_settings(settings: AppSettings) -> None:
    """Validate application settings at startup. Raises ValueError on fatal misconfig."""
    _check_analysis_service(settings)
    _check_job_bounds(settings)
    _check_storage(settings)
    _check_database(settings)
    _check_auth(settings)


def _check_analysis_service(settings: AppSettings) -> None:
    """The built-in OpenAI backend needs a real key and an assistant to run against."""
    if settings.llm.backend != "openai":
        return
    if settings.llm.api_key in ("no-key", ""):
        raise ValueError(
            "VISITWISE_LLM_API_KEY is required for the 'openai' analysis backend. "
            "Set it via environment variable or secrets manager."
        )
    if not settings.llm.assistant_id:
        raise ValueError("VISITWISE_LLM_ASSISTANT_ID is required for the 'openai' analysis backend.")


def _check_job_bounds(settings: AppSettings) -> None:
    """Zero attempts would time out every job before the first poll."""
    if settings.job.ingestion_max_attempts < 1 or settings.job.execution_max_attempts < 1:
        raise ValueError(
            "VISITWISE_JOB_INGESTION_MAX_ATTEMPTS and VISITWISE_JOB_EXECUTION_MAX_ATTEMPTS "
            "must both be at least 1."
        )


def _check_storage(settings: AppSettings) -> None:
    if settings.storage.backend == "s3" and not settings.storage.s3_bucket:
        raise ValueError("VISITWISE_STORAGE_S3_BUCKET is required when VISITWISE_STORAGE_BACKEND=s3.")


def _check_database(settings: AppSettings) -> None:
    """Reject DynamoDB without a table, warn about memory storage in containers."""
    if settings.database.backend == "dynamodb" and not settings.database.table_name:
        raise ValueError(
            "VISITWISE_DATABASE_TABLE_NAME is required when VISITWISE_DATABASE_BACKEND=dynamodb."
        )

    is_container = bool(
        os.environ.get("ECS_CONTAINER_METADATA_URI")
        or os.environ.get("KUBERNETES_SERVICE_HOST")
    )
    if is_container and settings.database.backend == "memory":
        log.warning(
            "VISITWISE_DATABASE_BACKEND=memory in a container environment. "
            "Summaries will be lost on restart. Consider VISITWISE_DATABASE_BACKEND=dynamodb."
        )


def _check_auth(settings: AppSettings) -> None:
    """Reject auth enabled with no way to verify tokens."""
    if settings.auth.enabled and not settings.auth.jwks_url and not settings.auth.shared_secret:
        raise ValueError(
            "VISITWISE_AUTH_ENABLED=true but neither VISITWISE_AUTH_JWKS_URL nor "
            "VISITWISE_AUTH_SHARED_SECRET is set. All authenticated requests would be rejected."
        )
