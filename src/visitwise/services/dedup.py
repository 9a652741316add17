"""Deduplication resolver: at most one summary per (owner, appointment date).

Historical summaries store the appointment date in mixed encodings, so a
server-side range query cannot match them uniformly.  The resolver loads the
owner's summaries (per-owner volume is small) and compares normalized dates
client-side.  New writes always store the canonical ISO string, so this scan
only exists for the legacy data.

A second, narrower check catches two near-simultaneous runs on the same
document: a summary created from the same source path within the trailing
window is reused only when its own date cannot be read.  A summary with a
readable, different date is never reused, even from the same document
moments ago, so appointments a day apart always stay separate.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from visitwise.core.dates import parse_instant, try_normalize_appointment
from visitwise.models import SUMMARIES, DedupResolution, utcnow
from visitwise.persistence.protocols import IDocumentStore, StoredDocument

log = logging.getLogger(__name__)

# Older records used "date" for the appointment date
_APPOINTMENT_FIELDS = ("appointment_date", "date")


def stored_appointment(data: dict) -> Optional[datetime]:
    """Normalized appointment date of a stored summary, or None if unreadable.

    Fields are tried in order; the first one that parses wins.
    """
    for field in _APPOINTMENT_FIELDS:
        value = data.get(field)
        if value is None:
            continue
        normalized = try_normalize_appointment(value)
        if normalized is not None:
            return normalized
    return None


class DeduplicationResolver:
    def __init__(self, store: IDocumentStore, recent_window_seconds: float = 30.0) -> None:
        self._store = store
        self._window = timedelta(seconds=recent_window_seconds)

    async def resolve(
        self,
        owner_id: str,
        appointment: datetime,
        *,
        source_path: str = "",
        now: Optional[datetime] = None,
    ) -> DedupResolution:
        """Find the summary this run should update, if any.

        Args:
            owner_id: Owning user.
            appointment: Already-normalized midnight-UTC appointment instant.
            source_path: Storage path of the document being analyzed.
            now: Reference time for the trailing-window check.
        """
        records = await self._store.query(SUMMARIES, owner_id)

        date_matches: list[StoredDocument] = []
        undated: list[StoredDocument] = []
        for record in records:
            stored = stored_appointment(record.data)
            if stored is None:
                log.debug("Summary %s has no readable appointment date; excluded from matching", record.doc_id)
                undated.append(record)
                continue
            if stored == appointment:
                date_matches.append(record)

        if date_matches:
            date_matches.sort(key=self._created_key)
            chosen = date_matches[0]
            if len(date_matches) > 1:
                log.warning(
                    "Owner %s has %d summaries for %s; updating oldest %s (others: %s)",
                    owner_id, len(date_matches), appointment.date().isoformat(), chosen.doc_id,
                    ", ".join(r.doc_id for r in date_matches[1:]),
                )
            return DedupResolution(matched_id=chosen.doc_id, reason="date")

        recent = self._recent_from_source(undated, source_path, now or utcnow())
        if recent is not None:
            log.warning(
                "Reusing summary %s created moments ago from %s (concurrent run suspected)",
                recent.doc_id, source_path,
            )
            return DedupResolution(matched_id=recent.doc_id, reason="recent_source")

        return DedupResolution()

    def _recent_from_source(
        self,
        records: list[StoredDocument],
        source_path: str,
        now: datetime,
    ) -> Optional[StoredDocument]:
        if not source_path:
            return None
        newest: Optional[StoredDocument] = None
        newest_at: Optional[datetime] = None
        for record in records:
            if record.data.get("source_path") != source_path:
                continue
            created = parse_instant(record.data.get("created_at"))
            if created is None or now - created > self._window or created > now + self._window:
                continue
            if newest_at is None or created > newest_at:
                newest, newest_at = record, created
        return newest

    @staticmethod
    def _created_key(record: StoredDocument) -> tuple[int, float]:
        created = parse_instant(record.data.get("created_at"))
        # Unreadable creation times sort last
        return (0, created.timestamp()) if created else (1, 0.0)
