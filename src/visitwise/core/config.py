"""Nested pydantic-settings configuration for the application.

Each sub-config reads its own ``VISITWISE_<GROUP>_*`` env vars, so
``AppSettings().job.execution_max_attempts`` comes from
``VISITWISE_JOB_EXECUTION_MAX_ATTEMPTS``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class AnalysisServiceConfig(BaseSettings):
    """External analysis service configuration.

    Env vars use ``VISITWISE_LLM_`` prefix::

        export VISITWISE_LLM_API_KEY=sk-...
        export VISITWISE_LLM_ASSISTANT_ID=asst_...

    ``backend`` is ``"openai"`` for the built-in Assistants backend, or a
    dotted path such as ``mypackage.backends:BedrockAgentBackend``.
    """

    model_config = {"env_prefix": "VISITWISE_LLM_"}

    backend: str = "openai"
    model: str = "gpt-4o"
    api_key: str = "no-key"
    base_url: str = ""
    assistant_id: str = ""
    timeout: float = 60.0


class JobConfig(BaseSettings):
    """Polling bounds for the analysis job.

    Env vars use ``VISITWISE_JOB_`` prefix.  The defaults give roughly two
    minutes for ingestion and four minutes for execution.
    """

    model_config = {"env_prefix": "VISITWISE_JOB_"}

    ingestion_poll_interval: float = Field(default=2.0, ge=0.0)
    ingestion_max_attempts: int = 60
    execution_poll_interval: float = Field(default=2.0, ge=0.0)
    execution_max_attempts: int = 120


class LockConfig(BaseSettings):
    """Advisory processing lock configuration.

    Env vars use ``VISITWISE_LOCK_`` prefix.
    """

    model_config = {"env_prefix": "VISITWISE_LOCK_"}

    enabled: bool = True
    ttl_seconds: float = 600.0


class DedupConfig(BaseSettings):
    """Deduplication configuration.

    Env vars use ``VISITWISE_DEDUP_`` prefix.
    """

    model_config = {"env_prefix": "VISITWISE_DEDUP_"}

    recent_window_seconds: float = 30.0


class FanoutConfig(BaseSettings):
    """Derived-record fan-out configuration.

    Env vars use ``VISITWISE_FANOUT_`` prefix.
    """

    model_config = {"env_prefix": "VISITWISE_FANOUT_"}

    rerun_policy: Literal["append", "replace"] = "append"
    max_batch_size: int = Field(default=100, ge=1)


class StorageConfig(BaseSettings):
    """Object storage for source documents.

    Env vars use ``VISITWISE_STORAGE_`` prefix.
    """

    model_config = {"env_prefix": "VISITWISE_STORAGE_"}

    backend: Literal["file", "s3", "memory"] = "file"
    root_path: Path = Path("./uploads")
    s3_bucket: str = ""
    s3_prefix: str = ""
    aws_region: str = "us-east-1"


class DatabaseConfig(BaseSettings):
    """Document database configuration.

    Env vars use ``VISITWISE_DATABASE_`` prefix.
    """

    model_config = {"env_prefix": "VISITWISE_DATABASE_"}

    backend: Literal["dynamodb", "memory"] = "memory"
    table_name: str = "visitwise-records"
    aws_region: str = "us-east-1"


class SweepConfig(BaseSettings):
    """Orphaned job-resource sweep configuration.

    Env vars use ``VISITWISE_SWEEP_`` prefix.
    """

    model_config = {"env_prefix": "VISITWISE_SWEEP_"}

    max_age_seconds: float = 3600.0


class ObservabilityConfig(BaseSettings):
    """Observability configuration.

    Env vars use ``VISITWISE_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "VISITWISE_OBSERVABILITY_"}

    service_name: str = "visitwise"
    log_level: str = "INFO"


class AuthConfig(BaseSettings):
    """API authentication configuration.

    Env vars use ``VISITWISE_AUTH_`` prefix.  When ``enabled`` is False the
    ``X-Caller-Id`` header is trusted as-is (local development only).
    """

    model_config = {"env_prefix": "VISITWISE_AUTH_"}

    enabled: bool = False
    jwks_url: str = ""
    shared_secret: str = ""
    algorithm: str = "RS256"
    audience: str = ""
    issuer: str = ""
    caller_claim: str = "sub"


class APIConfig(BaseSettings):
    """HTTP API metadata.

    Env vars use ``VISITWISE_API_`` prefix.
    """

    model_config = {"env_prefix": "VISITWISE_API_"}

    title: str = "visitwise"
    description: str = "Visit summary analysis pipeline"
    port: int = 8080


class AppSettings(BaseSettings):
    """Top-level application settings aggregating all sub-configs."""

    llm: AnalysisServiceConfig = AnalysisServiceConfig()
    job: JobConfig = JobConfig()
    lock: LockConfig = LockConfig()
    dedup: DedupConfig = DedupConfig()
    fanout: FanoutConfig = FanoutConfig()
    storage: StorageConfig = StorageConfig()
    database: DatabaseConfig = DatabaseConfig()
    sweep: SweepConfig = SweepConfig()
    observability: ObservabilityConfig = ObservabilityConfig()
    auth: AuthConfig = AuthConfig()
    api: APIConfig = APIConfig()
