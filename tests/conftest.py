"""Shared fixtures for visitwise tests."""

from __future__ import annotations

import json

import pytest

from visitwise.core.config import AppSettings, JobConfig
from visitwise.models import StructuredResult
from visitwise.persistence.memory_backend import MemoryDocumentStore, MemoryObjectStorage
from visitwise.pipeline import VisitAnalysisPipeline
from tests.fakes.fake_analysis_service import FakeAnalysisService

OWNER = "user-1"
SOURCE = "visits/user-1/2026-02-14-visit.pdf"


async def _no_sleep(_: float) -> None:
    return None


SAMPLE_RESULT: dict = {
    "maternal_status": "Blood pressure is normal and weight gain is on track.",
    "fetal_status": "Heartbeat is strong at 145 beats per minute.",
    "next_steps": ["Schedule the glucose screening test"],
    "action_items": [
        {"title": "Book glucose test", "description": "Between weeks 24 and 28", "category": "appointment"},
        {"title": "Take prenatal vitamin", "description": "Once a day", "category": "medication"},
    ],
    "learning_modules": [
        {
            "title": "Glucose screening",
            "description": "What the test checks",
            "sections": [{"heading": "Why", "body": "It screens for gestational diabetes."}],
            "trimester": "second",
            "week": 24,
        }
    ],
    "glossary": [{"term": "Fundal height", "definition": "Distance from pubic bone to top of uterus"}],
    "suggested_questions": ["Do I need to fast before the glucose test?"],
    "diagnoses": [],
    "tests_and_procedures": [{"name": "Doppler", "explanation": "Listens to the baby's heartbeat"}],
    "communication_notes": "",
    "advocacy_notes": "",
    "contradictions": [],
    "flags": [],
    "provider_name": "Dr. Rivera",
    "visit_type": "Routine prenatal",
}


@pytest.fixture
def settings() -> AppSettings:
    """Test settings: no poll delay, small attempt bounds, memory backends."""
    settings = AppSettings()
    settings.job = JobConfig(
        ingestion_poll_interval=0.0,
        ingestion_max_attempts=3,
        execution_poll_interval=0.0,
        execution_max_attempts=4,
    )
    return settings


@pytest.fixture
def sample_output() -> str:
    return json.dumps(SAMPLE_RESULT)


@pytest.fixture
def sample_result() -> StructuredResult:
    return StructuredResult.model_validate(SAMPLE_RESULT)


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def storage() -> MemoryObjectStorage:
    return MemoryObjectStorage({SOURCE: b"%PDF-1.4 visit notes"})


@pytest.fixture
def service(sample_output: str) -> FakeAnalysisService:
    return FakeAnalysisService(
        artifact_statuses=["pending", "ready"],
        run_statuses=["pending", "running", "completed"],
        output=sample_output,
    )


@pytest.fixture
def pipeline(storage, store, service, settings) -> VisitAnalysisPipeline:
    return VisitAnalysisPipeline(
        storage=storage,
        store=store,
        service=service,
        settings=settings,
        sleep=_no_sleep,
    )
