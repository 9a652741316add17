"""Pydantic data models for visitwise.

Persisted records (``SummaryRecord``, ``ActionItem``, ``LearningModule``,
``ProcessingLock``, ``JobResource``) serialize with ``model_dump(mode="json")``
so every datetime is stored as an ISO-8601 UTC string.  The structured
analysis output (``StructuredResult``) is validated straight from the
service's JSON.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Collections ──────────────────────────────────────────────────────

SUMMARIES = "visit_summaries"
ACTION_ITEMS = "action_items"
LEARNING_MODULES = "learning_modules"
PROCESSING_LOCKS = "processing_locks"
ANALYSIS_JOBS = "analysis_jobs"


# ── Inputs ───────────────────────────────────────────────────────────


class SourceArtifact(BaseModel):
    """An uploaded visit document, referenced by its storage path."""

    path: str
    content: bytes = b""

    @property
    def filename(self) -> str:
        return self.path.rsplit("/", 1)[-1] or "visit-document"


class AnalysisContext(BaseModel):
    """Profile hints that tailor the analysis instructions."""

    trimester: Optional[str] = None
    gestational_week: Optional[int] = Field(default=None, ge=0, le=45)
    reading_level: str = "6th grade"
    known_conditions: list[str] = Field(default_factory=list)
    preferred_language: str = "English"
    provider_name: Optional[str] = None
    visit_type: Optional[str] = None


# ── Analysis job ─────────────────────────────────────────────────────


class JobState(str, Enum):
    SUBMITTED = "submitted"
    AWAITING_INGESTION = "awaiting_ingestion"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class JobResource(BaseModel):
    """Ledger entry for external resources held by a live analysis job."""

    run_id: str
    owner_id: str
    artifact_id: str = ""
    context_id: str = ""
    state: JobState = JobState.SUBMITTED
    created_at: datetime = Field(default_factory=utcnow)


# ── Structured analysis output ───────────────────────────────────────


class ActionItemCategory(str, Enum):
    MEDICATION = "medication"
    APPOINTMENT = "appointment"
    LIFESTYLE = "lifestyle"
    MONITORING = "monitoring"
    QUESTION = "question"
    OTHER = "other"


def _none_to_empty(value: Any) -> Any:
    # The service emits null for text it has nothing to say about
    return "" if value is None else value


_TRIMESTER_NAMES = {1: "first", 2: "second", 3: "third"}


class ResultActionItem(BaseModel):
    title: str
    description: str = ""
    category: ActionItemCategory = ActionItemCategory.OTHER

    @field_validator("description", mode="before")
    @classmethod
    def _empty_text(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            if key in ActionItemCategory._value2member_map_:
                return key
        return ActionItemCategory.OTHER


class ModuleSection(BaseModel):
    heading: str = ""
    body: str = ""

    @field_validator("heading", "body", mode="before")
    @classmethod
    def _empty_text(cls, value: Any) -> Any:
        return _none_to_empty(value)


class ResultLearningModule(BaseModel):
    title: str
    description: str = ""
    sections: list[ModuleSection] = Field(default_factory=list)
    trimester: Optional[str] = None
    week: Optional[int] = None

    @field_validator("description", mode="before")
    @classmethod
    def _empty_text(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @field_validator("trimester", mode="before")
    @classmethod
    def _coerce_trimester(cls, value: Any) -> Any:
        """Accept ``2`` as well as ``"second"``."""
        if isinstance(value, int) and not isinstance(value, bool):
            return _TRIMESTER_NAMES.get(value, str(value))
        return value


class TermDefinition(BaseModel):
    term: str
    definition: str = ""

    @field_validator("definition", mode="before")
    @classmethod
    def _empty_text(cls, value: Any) -> Any:
        return _none_to_empty(value)


class Explanation(BaseModel):
    name: str
    explanation: str = ""

    @field_validator("explanation", mode="before")
    @classmethod
    def _empty_text(cls, value: Any) -> Any:
        return _none_to_empty(value)


class StructuredResult(BaseModel):
    """Structured output of one analysis run.

    Every narrative field is optional; the formatted rendering omits
    whatever is missing.
    """

    maternal_status: str = ""
    fetal_status: str = ""
    next_steps: list[str] = Field(default_factory=list)
    action_items: list[ResultActionItem] = Field(default_factory=list)
    learning_modules: list[ResultLearningModule] = Field(default_factory=list)
    glossary: list[TermDefinition] = Field(default_factory=list)
    suggested_questions: list[str] = Field(default_factory=list)
    diagnoses: list[Explanation] = Field(default_factory=list)
    tests_and_procedures: list[Explanation] = Field(default_factory=list)
    communication_notes: str = ""
    advocacy_notes: str = ""
    contradictions: list[str] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list)
    provider_name: Optional[str] = None
    visit_type: Optional[str] = None

    @field_validator(
        "maternal_status", "fetal_status", "communication_notes", "advocacy_notes",
        mode="before",
    )
    @classmethod
    def _empty_text(cls, value: Any) -> Any:
        return _none_to_empty(value)


# ── Persisted records ────────────────────────────────────────────────


class SummaryRecord(BaseModel):
    """The deduplicated result for one (owner, appointment date)."""

    summary_id: str
    owner_id: str
    appointment_date: datetime
    maternal_status: str = ""
    fetal_status: str = ""
    next_steps: list[str] = Field(default_factory=list)
    formatted_summary: str = ""
    flags: list[str] = Field(default_factory=list)
    provider_name: Optional[str] = None
    visit_type: Optional[str] = None
    source_path: str = ""
    run_id: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ActionItem(BaseModel):
    item_id: str
    owner_id: str
    summary_id: str
    title: str
    description: str = ""
    category: ActionItemCategory = ActionItemCategory.OTHER
    completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class LearningModule(BaseModel):
    module_id: str
    owner_id: str
    summary_id: str
    title: str
    description: str = ""
    sections: list[ModuleSection] = Field(default_factory=list)
    trimester: Optional[str] = None
    week: Optional[int] = None
    is_generated: bool = True
    is_completed: bool = False
    progress: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class ProcessingLock(BaseModel):
    owner_id: str
    source_key: str
    run_id: str
    acquired_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) < self.expires_at


# ── Outcome / diagnostics ────────────────────────────────────────────


class DedupResolution(BaseModel):
    matched_id: Optional[str] = None
    reason: str = "none"


class AnalysisOutcome(BaseModel):
    """What the pipeline returns to its caller."""

    summary_id: str
    formatted_summary: str
    action_items: list[ActionItem] = Field(default_factory=list)
    learning_modules: list[LearningModule] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list)
    updated_existing: bool = False
    run_id: str = ""


class StageMetrics(BaseModel):
    """Timing and status for one pipeline stage."""

    stage: str
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_ms: float = 0.0
    status: str = "ok"
    error: str = ""


class RunAnalytics(BaseModel):
    """Per-run diagnostics collected by :mod:`visitwise.hooks.run_tracker`."""

    run_id: str
    owner_id: str = ""
    source_path: str = ""
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    total_duration_ms: float = 0.0
    status: str = "running"
    stages: list[StageMetrics] = Field(default_factory=list)

    def finalize(self) -> None:
        self.ended_at = utcnow()
        if self.started_at:
            self.total_duration_ms = (self.ended_at - self.started_at).total_seconds() * 1000
        if self.status == "running":
            failed = any(s.status == "error" for s in self.stages)
            self.status = "failed" if failed else "completed"
