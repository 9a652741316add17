"""Tests for the deduplication resolver."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from visitwise.core.dates import normalize_appointment
from visitwise.models import SUMMARIES
from visitwise.persistence.memory_backend import MemoryDocumentStore
from visitwise.services.dedup import DeduplicationResolver, stored_appointment

OWNER = "u1"
APPOINTMENT = normalize_appointment("2026-02-14")
NOW = datetime(2026, 2, 20, 12, 0, tzinfo=timezone.utc)


async def _seed(store: MemoryDocumentStore, doc_id: str, **data) -> None:
    await store.set(SUMMARIES, data.pop("owner", OWNER), doc_id, data)


class TestStoredAppointment:
    def test_prefers_appointment_date_field(self):
        data = {"appointment_date": "2026-02-14", "date": "2020-01-01"}
        assert stored_appointment(data) == APPOINTMENT

    def test_falls_back_to_legacy_field(self):
        assert stored_appointment({"date": {"seconds": 1771027200}}) == APPOINTMENT

    def test_unreadable(self):
        assert stored_appointment({"appointment_date": "sometime"}) is None
        assert stored_appointment({}) is None

    def test_unreadable_primary_falls_back_to_legacy_field(self):
        assert stored_appointment({"appointment_date": "sometime", "date": "2026-02-14"}) == APPOINTMENT
        assert stored_appointment({"appointment_date": "", "date": {"_seconds": 1771027200}}) == APPOINTMENT


class TestResolveByDate:
    async def test_no_records(self):
        resolution = await DeduplicationResolver(MemoryDocumentStore()).resolve(OWNER, APPOINTMENT, now=NOW)
        assert resolution.matched_id is None
        assert resolution.reason == "none"

    async def test_matches_across_encodings(self):
        encodings = [
            "2026-02-14",
            "2026-02-14T00:00:00Z",
            "2026-02-14T17:20:00+00:00",
            {"seconds": 1771027200, "nanoseconds": 0},
            datetime(2026, 2, 14, 9, 0, tzinfo=timezone.utc),
        ]
        for value in encodings:
            store = MemoryDocumentStore()
            await _seed(store, "s1", appointment_date=value)
            resolution = await DeduplicationResolver(store).resolve(OWNER, APPOINTMENT, now=NOW)
            assert resolution.matched_id == "s1", value
            assert resolution.reason == "date"

    async def test_different_day_not_matched(self):
        store = MemoryDocumentStore()
        await _seed(store, "s1", appointment_date="2026-02-15")
        await _seed(store, "s2", appointment_date="2026-02-13T23:59:59Z")
        resolution = await DeduplicationResolver(store).resolve(OWNER, APPOINTMENT, now=NOW)
        assert resolution.matched_id is None

    async def test_other_owner_not_matched(self):
        store = MemoryDocumentStore()
        await _seed(store, "s1", owner="u2", appointment_date="2026-02-14")
        resolution = await DeduplicationResolver(store).resolve(OWNER, APPOINTMENT, now=NOW)
        assert resolution.matched_id is None

    async def test_oldest_of_multiple_matches_wins(self):
        store = MemoryDocumentStore()
        await _seed(store, "newer", appointment_date="2026-02-14", created_at="2026-02-15T10:00:00Z")
        await _seed(store, "oldest", appointment_date={"seconds": 1771027200}, created_at="2026-02-14T10:00:00Z")
        await _seed(store, "no-created", date="2026-02-14")
        resolution = await DeduplicationResolver(store).resolve(OWNER, APPOINTMENT, now=NOW)
        assert resolution.matched_id == "oldest"

    async def test_unreadable_records_skipped(self):
        store = MemoryDocumentStore()
        await _seed(store, "bad", appointment_date="unknown")
        await _seed(store, "good", appointment_date="2026-02-14")
        resolution = await DeduplicationResolver(store).resolve(OWNER, APPOINTMENT, now=NOW)
        assert resolution.matched_id == "good"


class TestRecentSourceWindow:
    async def test_recent_undated_same_source_reused(self):
        store = MemoryDocumentStore()
        created = (NOW - timedelta(seconds=10)).isoformat()
        await _seed(store, "s1", appointment_date="garbled", source_path="visits/a.pdf", created_at=created)
        resolution = await DeduplicationResolver(store, recent_window_seconds=30).resolve(
            OWNER, APPOINTMENT, source_path="visits/a.pdf", now=NOW
        )
        assert resolution.matched_id == "s1"
        assert resolution.reason == "recent_source"

    async def test_outside_window_not_reused(self):
        store = MemoryDocumentStore()
        created = (NOW - timedelta(seconds=90)).isoformat()
        await _seed(store, "s1", source_path="visits/a.pdf", created_at=created)
        resolution = await DeduplicationResolver(store, recent_window_seconds=30).resolve(
            OWNER, APPOINTMENT, source_path="visits/a.pdf", now=NOW
        )
        assert resolution.matched_id is None

    async def test_other_source_not_reused(self):
        store = MemoryDocumentStore()
        await _seed(store, "s1", source_path="visits/b.pdf", created_at=NOW.isoformat())
        resolution = await DeduplicationResolver(store).resolve(
            OWNER, APPOINTMENT, source_path="visits/a.pdf", now=NOW
        )
        assert resolution.matched_id is None

    async def test_dated_record_with_other_date_never_reused(self):
        store = MemoryDocumentStore()
        await _seed(
            store, "s1",
            appointment_date="2026-02-15",
            source_path="visits/a.pdf",
            created_at=NOW.isoformat(),
        )
        resolution = await DeduplicationResolver(store).resolve(
            OWNER, APPOINTMENT, source_path="visits/a.pdf", now=NOW
        )
        assert resolution.matched_id is None

    async def test_date_match_beats_recent_source(self):
        store = MemoryDocumentStore()
        await _seed(store, "recent", source_path="visits/a.pdf", created_at=NOW.isoformat())
        await _seed(store, "dated", appointment_date="2026-02-14", created_at="2026-01-01T00:00:00Z")
        resolution = await DeduplicationResolver(store).resolve(
            OWNER, APPOINTMENT, source_path="visits/a.pdf", now=NOW
        )
        assert resolution.matched_id == "dated"

    async def test_same_source_moments_ago_with_previous_day_not_reused(self):
        store = MemoryDocumentStore()
        await _seed(
            store, "s1",
            appointment_date="2026-02-13",
            source_path="visits/a.pdf",
            created_at=(NOW - timedelta(seconds=5)).isoformat(),
        )
        resolution = await DeduplicationResolver(store, recent_window_seconds=30).resolve(
            OWNER, APPOINTMENT, source_path="visits/a.pdf", now=NOW
        )
        assert resolution.matched_id is None
        assert resolution.reason == "none"

    async def test_concurrent_run_reuses_undated_record_from_same_source(self):
        store = MemoryDocumentStore()
        await _seed(store, "older", source_path="visits/a.pdf", created_at=(NOW - timedelta(seconds=20)).isoformat())
        await _seed(store, "newer", source_path="visits/a.pdf", created_at=(NOW - timedelta(seconds=2)).isoformat())
        resolution = await DeduplicationResolver(store, recent_window_seconds=30).resolve(
            OWNER, APPOINTMENT, source_path="visits/a.pdf", now=NOW
        )
        assert resolution.matched_id == "newer"
        assert resolution.reason == "recent_source"
