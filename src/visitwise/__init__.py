"""visitwise: visit summary analysis pipeline.

Turns an uploaded clinical-visit document into exactly one deduplicated
summary per (owner, appointment date), plus derived action items and
learning modules::

    from visitwise import AppSettings, VisitAnalysisPipeline

    pipeline = VisitAnalysisPipeline.from_settings(AppSettings())
    outcome = await pipeline.analyze(
        "visits/u1/2026-02-14.pdf", "u1", "2026-02-14", caller_id="u1",
    )
"""

from __future__ import annotations

from visitwise.core.config import AppSettings
from visitwise.core.dates import normalize_appointment
from visitwise.exceptions import ErrorCategory, PipelineError
from visitwise.models import (
    ActionItem,
    AnalysisContext,
    AnalysisOutcome,
    LearningModule,
    StructuredResult,
    SummaryRecord,
)
from visitwise.pipeline import VisitAnalysisPipeline

__all__ = [
    "ActionItem",
    "AnalysisContext",
    "AnalysisOutcome",
    "AppSettings",
    "ErrorCategory",
    "LearningModule",
    "PipelineError",
    "StructuredResult",
    "SummaryRecord",
    "VisitAnalysisPipeline",
    "normalize_appointment",
]
