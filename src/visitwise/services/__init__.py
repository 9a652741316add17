"""Pipeline services: advisory locks, dedup resolution and persistence fan-out."""

from __future__ import annotations

from visitwise.services.dedup import DeduplicationResolver
from visitwise.services.fanout import FanoutResult, PersistenceFanout
from visitwise.services.locks import LockManager, source_key

__all__ = [
    "DeduplicationResolver",
    "FanoutResult",
    "LockManager",
    "PersistenceFanout",
    "source_key",
]
