"""Tests for nested settings and env var loading."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from visitwise.core.config import AppSettings, FanoutConfig, JobConfig, StorageConfig


class TestDefaults:
    def test_job_bounds(self):
        job = JobConfig()
        assert job.ingestion_max_attempts == 60
        assert job.execution_max_attempts == 120
        assert job.ingestion_poll_interval == 2.0

    def test_aggregate(self):
        settings = AppSettings()
        assert settings.llm.backend == "openai"
        assert settings.fanout.rerun_policy == "append"
        assert settings.dedup.recent_window_seconds == 30.0
        assert settings.lock.enabled is True
        assert settings.auth.enabled is False


class TestEnvOverrides:
    def test_job_env(self, monkeypatch):
        monkeypatch.setenv("VISITWISE_JOB_EXECUTION_MAX_ATTEMPTS", "7")
        monkeypatch.setenv("VISITWISE_JOB_EXECUTION_POLL_INTERVAL", "0.25")
        job = JobConfig()
        assert job.execution_max_attempts == 7
        assert job.execution_poll_interval == 0.25

    def test_fanout_policy_env(self, monkeypatch):
        monkeypatch.setenv("VISITWISE_FANOUT_RERUN_POLICY", "replace")
        assert FanoutConfig().rerun_policy == "replace"

    def test_storage_backend_env(self, monkeypatch):
        monkeypatch.setenv("VISITWISE_STORAGE_BACKEND", "s3")
        monkeypatch.setenv("VISITWISE_STORAGE_S3_BUCKET", "visit-docs")
        storage = StorageConfig()
        assert storage.backend == "s3"
        assert storage.s3_bucket == "visit-docs"


class TestValidation:
    def test_rejects_unknown_policy(self):
        with pytest.raises(ValidationError):
            FanoutConfig(rerun_policy="merge")

    def test_rejects_negative_interval(self):
        with pytest.raises(ValidationError):
            JobConfig(ingestion_poll_interval=-1)
