"""Advisory processing locks.

A lock marker records which run last started on a source document.  It is
diagnostic, not mutual exclusion: ``acquire`` always overwrites
(last-writer-wins) and only logs when it finds another run's live marker;
``release`` removes a marker only while it still belongs to the releasing run.
Every failure is logged and swallowed so the pipeline never fails because
of its lock.
"""

from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Optional

from visitwise.models import PROCESSING_LOCKS, ProcessingLock, utcnow
from visitwise.persistence.protocols import IDocumentStore

log = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def source_key(source_path: str) -> str:
    """Derive a document-id-safe lock key from a storage path."""
    return _UNSAFE_KEY_CHARS.sub("_", source_path.strip("/")) or "_"


class LockManager:
    def __init__(self, store: IDocumentStore, ttl_seconds: float = 600.0) -> None:
        self._store = store
        self._ttl = timedelta(seconds=ttl_seconds)

    async def acquire(self, owner_id: str, key: str, run_id: str) -> Optional[ProcessingLock]:
        """Write this run's marker. Returns it, or None if the write failed."""
        await self._report_overlap(owner_id, key, run_id)

        now = utcnow()
        lock = ProcessingLock(
            owner_id=owner_id,
            source_key=key,
            run_id=run_id,
            acquired_at=now,
            expires_at=now + self._ttl,
        )
        try:
            await self._store.set(PROCESSING_LOCKS, owner_id, key, lock.model_dump(mode="json"))
        except Exception:
            log.warning("Could not acquire processing lock %s for run %s", key, run_id, exc_info=True)
            return None
        log.debug("Processing lock %s acquired by run %s", key, run_id)
        return lock

    async def release(self, owner_id: str, key: str, run_id: str) -> None:
        """Delete the marker if it still belongs to ``run_id``.

        A marker another run wrote since is left for that run; it expires on
        its own if that run never releases it.
        """
        try:
            data = await self._store.get(PROCESSING_LOCKS, owner_id, key)
            if not data:
                return
            holder = data.get("run_id")
            if holder != run_id:
                log.info("Processing lock %s is now held by run %s; run %s leaves it", key, holder, run_id)
                return
            await self._store.delete(PROCESSING_LOCKS, owner_id, key)
        except Exception:
            log.warning("Could not release processing lock %s for run %s", key, run_id, exc_info=True)

    async def current(self, owner_id: str, key: str) -> Optional[ProcessingLock]:
        """The marker currently stored for ``key``, if readable."""
        try:
            data = await self._store.get(PROCESSING_LOCKS, owner_id, key)
            return ProcessingLock.model_validate(data) if data else None
        except Exception:
            log.debug("Could not read processing lock %s", key, exc_info=True)
            return None

    async def _report_overlap(self, owner_id: str, key: str, run_id: str) -> None:
        previous = await self.current(owner_id, key)
        if previous is None or previous.run_id == run_id:
            return
        if previous.is_active():
            log.warning(
                "Overlapping analysis runs for %s: run %s started while run %s still holds the lock",
                key, run_id, previous.run_id,
            )
        else:
            log.info("Replacing expired processing lock %s from run %s", key, previous.run_id)
