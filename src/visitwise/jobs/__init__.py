"""External analysis job orchestration, resource ledger and orphan sweep."""

from __future__ import annotations

from visitwise.jobs.ledger import JobLedger
from visitwise.jobs.orchestrator import JobOrchestrator
from visitwise.jobs.sweeper import SweepReport, sweep_orphaned

__all__ = ["JobLedger", "JobOrchestrator", "SweepReport", "sweep_orphaned"]
