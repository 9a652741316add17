"""End-to-end scenarios over in-memory backends and a scripted analysis service."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from visitwise.core.dates import normalize_appointment
from visitwise.exceptions import ErrorCategory, PipelineError
from visitwise.models import ACTION_ITEMS, ANALYSIS_JOBS, LEARNING_MODULES, SUMMARIES
from visitwise.persistence.memory_backend import MemoryDocumentStore, MemoryObjectStorage
from visitwise.pipeline import VisitAnalysisPipeline
from visitwise.services.dedup import stored_appointment
from tests.fakes.fake_analysis_service import FakeAnalysisService

pytestmark = pytest.mark.integration

OWNER = "user-1"
SOURCE = "visits/user-1/visit.pdf"


async def _no_sleep(_: float) -> None:
    return None


def _build(settings, store, output: str, **service_kwargs) -> tuple[VisitAnalysisPipeline, FakeAnalysisService]:
    service = FakeAnalysisService(output=output, **service_kwargs)
    pipeline = VisitAnalysisPipeline(
        storage=MemoryObjectStorage({SOURCE: b"%PDF visit", "visits/user-1/second.pdf": b"%PDF again"}),
        store=store,
        service=service,
        settings=settings,
        sleep=_no_sleep,
    )
    return pipeline, service


class TestEndToEnd:
    async def test_fresh_analysis(self, settings, sample_output):
        store = MemoryDocumentStore()
        pipeline, service = _build(
            settings, store, sample_output,
            artifact_statuses=["pending", "ready"],
            run_statuses=["pending", "running", "completed"],
        )

        outcome = await pipeline.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)

        summary = await store.get(SUMMARIES, OWNER, outcome.summary_id)
        assert summary["appointment_date"] == "2026-02-14T00:00:00Z"
        assert summary["formatted_summary"] == outcome.formatted_summary
        assert store.count(ACTION_ITEMS, OWNER) == 2
        assert store.count(LEARNING_MODULES, OWNER) == 1
        assert store.count(ANALYSIS_JOBS, OWNER) == 0
        assert service.artifacts == set() and service.contexts == set()

    async def test_same_day_in_other_encodings_updates_one_summary(self, settings, sample_output):
        store = MemoryDocumentStore()
        pipeline, _ = _build(settings, store, sample_output)

        first = await pipeline.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)
        second = await pipeline.analyze(SOURCE, OWNER, "2026-02-14T16:45:00Z", caller_id=OWNER)
        third = await pipeline.analyze(
            "visits/user-1/second.pdf", OWNER, {"seconds": 1771027200 + 500}, caller_id=OWNER
        )
        fourth = await pipeline.analyze(
            SOURCE, OWNER, datetime(2026, 2, 14, 20, 0, tzinfo=timezone.utc), caller_id=OWNER
        )

        assert first.updated_existing is False
        assert {second.summary_id, third.summary_id, fourth.summary_id} == {first.summary_id}
        assert second.updated_existing and third.updated_existing and fourth.updated_existing
        assert store.count(SUMMARIES, OWNER) == 1
        # Derived records accumulate under the default append policy
        assert store.count(ACTION_ITEMS, OWNER) == 8

    async def test_day_apart_never_merge(self, settings, sample_output):
        store = MemoryDocumentStore()
        pipeline, _ = _build(settings, store, sample_output)

        a = await pipeline.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)
        b = await pipeline.analyze(SOURCE, OWNER, "2026-02-15", caller_id=OWNER)

        assert a.summary_id != b.summary_id
        assert store.count(SUMMARIES, OWNER) == 2
        dates = sorted(stored_appointment(d.data) for d in await store.query(SUMMARIES, OWNER))
        assert dates == [normalize_appointment("2026-02-14"), normalize_appointment("2026-02-15")]

    async def test_legacy_records_in_mixed_encodings(self, settings, sample_output):
        store = MemoryDocumentStore()
        await store.set(SUMMARIES, OWNER, "legacy-ts", {
            "date": {"_seconds": 1771027200, "_nanoseconds": 0},
            "created_at": "2026-02-14T12:00:00Z",
        })
        await store.set(SUMMARIES, OWNER, "legacy-dup", {
            "appointment_date": "2026-02-14T08:00:00.000Z",
            "created_at": "2026-02-16T12:00:00Z",
        })
        await store.set(SUMMARIES, OWNER, "other-day", {"appointment_date": "2026-02-10"})
        pipeline, _ = _build(settings, store, sample_output)

        outcome = await pipeline.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)

        assert outcome.summary_id == "legacy-ts"
        assert outcome.updated_existing is True
        assert store.count(SUMMARIES, OWNER) == 3

    async def test_replace_policy_end_to_end(self, settings, sample_output):
        settings.fanout.rerun_policy = "replace"
        store = MemoryDocumentStore()
        pipeline, _ = _build(settings, store, sample_output)

        await pipeline.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)
        await pipeline.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)

        assert store.count(ACTION_ITEMS, OWNER) == 2
        assert store.count(LEARNING_MODULES, OWNER) == 1


class TestFailureScenarios:
    async def test_malformed_output_leaves_store_untouched(self, settings):
        store = MemoryDocumentStore()
        pipeline, service = _build(settings, store, "```json\n{not valid json\n```")

        with pytest.raises(PipelineError) as exc_info:
            await pipeline.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)

        assert exc_info.value.category == ErrorCategory.INTERNAL
        for collection in (SUMMARIES, ACTION_ITEMS, LEARNING_MODULES):
            assert store.count(collection, OWNER) == 0
        assert service.artifacts == set()

    async def test_execution_timeout_then_successful_retry(self, settings, sample_output):
        store = MemoryDocumentStore()
        stuck, _ = _build(settings, store, sample_output, run_statuses=["running"])
        with pytest.raises(PipelineError) as exc_info:
            await stuck.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)
        assert exc_info.value.category == ErrorCategory.TIMEOUT
        assert store.count(SUMMARIES, OWNER) == 0

        healthy, _ = _build(settings, store, sample_output)
        outcome = await healthy.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)
        assert outcome.updated_existing is False
        assert store.count(SUMMARIES, OWNER) == 1

    async def test_cleanup_failure_recorded_for_sweep(self, settings, sample_output):
        from visitwise.jobs.sweeper import sweep_orphaned

        store = MemoryDocumentStore()
        pipeline, service = _build(
            settings, store, sample_output, delete_artifact_error=RuntimeError("service down")
        )
        await pipeline.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)
        assert store.count(ANALYSIS_JOBS, OWNER) == 1

        healthy = FakeAnalysisService()
        report = await sweep_orphaned(healthy, pipeline.ledger, OWNER, max_age_seconds=0)
        assert len(report.swept) == 1
        assert store.count(ANALYSIS_JOBS, OWNER) == 0

    async def test_output_wrapped_in_prose(self, settings, sample_result):
        store = MemoryDocumentStore()
        wrapped = "Here is the analysis you asked for:\n" + json.dumps(sample_result.model_dump(mode="json")) + "\nTake care!"
        pipeline, _ = _build(settings, store, wrapped)
        outcome = await pipeline.analyze(SOURCE, OWNER, "2026-02-14", caller_id=OWNER)
        assert "## How Your Baby Is Doing" in outcome.formatted_summary
