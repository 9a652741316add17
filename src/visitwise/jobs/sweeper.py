"""Release external resources left behind by crashed or abandoned jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from visitwise.inference.protocols import IAnalysisService
from visitwise.jobs.ledger import JobLedger
from visitwise.models import utcnow

log = logging.getLogger(__name__)


@dataclass
class SweepReport:
    swept: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


async def sweep_orphaned(
    service: IAnalysisService,
    ledger: JobLedger,
    owner_id: str,
    *,
    max_age_seconds: float = 3600.0,
) -> SweepReport:
    """Delete artifacts and contexts of ledger entries older than ``max_age_seconds``.

    An entry is removed from the ledger only once all of its resources are
    gone; entries that fail stay for the next sweep.
    """
    cutoff = utcnow() - timedelta(seconds=max_age_seconds)
    report = SweepReport()

    for resource in await ledger.list_older_than(owner_id, cutoff):
        try:
            if resource.context_id:
                await service.delete_context(resource.context_id)
            if resource.artifact_id:
                await service.delete_artifact(resource.artifact_id)
        except Exception:
            log.warning("Sweep failed for run %s", resource.run_id, exc_info=True)
            report.failed.append(resource.run_id)
            continue
        await ledger.remove(resource)
        report.swept.append(resource.run_id)

    if report.swept or report.failed:
        log.info(
            "Swept %d orphaned job(s) for %s, %d failed",
            len(report.swept), owner_id, len(report.failed),
        )
    return report
