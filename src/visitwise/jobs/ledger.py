"""Job resource ledger: which external resources a live analysis job holds.

Entries are written as resources are allocated and removed once cleanup
succeeds.  Anything left behind belongs to a job that crashed or was
abandoned mid-poll, and :mod:`visitwise.jobs.sweeper` releases it.
"""

from __future__ import annotations

import logging
from datetime import datetime

from visitwise.models import ANALYSIS_JOBS, JobResource
from visitwise.persistence.protocols import IDocumentStore

log = logging.getLogger(__name__)


class JobLedger:
    """Best-effort bookkeeping over the ``analysis_jobs`` collection.

    ``record`` and ``remove`` never raise: a ledger outage must not fail an
    otherwise healthy analysis.
    """

    def __init__(self, store: IDocumentStore) -> None:
        self._store = store

    async def record(self, resource: JobResource) -> None:
        try:
            await self._store.set(
                ANALYSIS_JOBS,
                resource.owner_id,
                resource.run_id,
                resource.model_dump(mode="json"),
            )
        except Exception:
            log.warning("Failed to record job resources for run %s", resource.run_id, exc_info=True)

    async def remove(self, resource: JobResource) -> None:
        try:
            await self._store.delete(ANALYSIS_JOBS, resource.owner_id, resource.run_id)
        except Exception:
            log.warning("Failed to clear job ledger entry for run %s", resource.run_id, exc_info=True)

    async def list_older_than(self, owner_id: str, cutoff: datetime) -> list[JobResource]:
        """Entries for ``owner_id`` created before ``cutoff``. Unreadable entries are skipped."""
        stale: list[JobResource] = []
        for doc in await self._store.query(ANALYSIS_JOBS, owner_id):
            try:
                resource = JobResource.model_validate(doc.data)
            except ValueError:
                log.debug("Skipping unreadable ledger entry %s", doc.doc_id)
                continue
            if resource.created_at < cutoff:
                stale.append(resource)
        return stale
