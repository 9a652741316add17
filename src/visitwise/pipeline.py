"""Pipeline entry point: one visit document in, one deduplicated summary out.

Stages run in a fixed order::

    validate -> fetch -> lock -> orchestrate -> parse -> dedup -> persist -> unlock

The persistence write is the last step, after every external call has
succeeded, so a failed run never leaves a partial summary behind.  Every
error leaves :meth:`VisitAnalysisPipeline.analyze` as a classified
:class:`~visitwise.exceptions.PipelineError`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from visitwise.core.config import AppSettings
from visitwise.core.dates import normalize_appointment
from visitwise.exceptions import (
    AuthorizationError,
    InputInvalidError,
    PipelineError,
    SourceNotFoundError,
    VisitwiseError,
    to_pipeline_error,
)
from visitwise.hooks.run_tracker import end_run, new_run_id, start_run, track_stage
from visitwise.inference.protocols import IAnalysisService
from visitwise.jobs.ledger import JobLedger
from visitwise.jobs.orchestrator import JobOrchestrator, Sleep
from visitwise.models import AnalysisContext, AnalysisOutcome, SourceArtifact
from visitwise.parsing.response_parser import parse
from visitwise.persistence.protocols import IDocumentStore, IObjectStorage
from visitwise.prompts.visit_analysis import build_instructions
from visitwise.services.dedup import DeduplicationResolver
from visitwise.services.fanout import PersistenceFanout
from visitwise.services.locks import LockManager, source_key

log = logging.getLogger(__name__)


class VisitAnalysisPipeline:
    """Coordinates lock, job, parser, dedup and fan-out for one analysis call."""

    def __init__(
        self,
        *,
        storage: IObjectStorage,
        store: IDocumentStore,
        service: IAnalysisService,
        settings: Optional[AppSettings] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings or AppSettings()
        self._storage = storage
        self._store = store
        self._service = service
        self._ledger = JobLedger(store)
        self._locks = LockManager(store, ttl_seconds=self._settings.lock.ttl_seconds)
        self._orchestrator = JobOrchestrator(service, self._settings.job, ledger=self._ledger, sleep=sleep)
        self._dedup = DeduplicationResolver(store, recent_window_seconds=self._settings.dedup.recent_window_seconds)
        self._fanout = PersistenceFanout(store, rerun_policy=self._settings.fanout.rerun_policy)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> VisitAnalysisPipeline:
        """Build a pipeline with the backends named in ``settings``."""
        from visitwise.inference.factory import create_analysis_service
        from visitwise.persistence.factory import create_document_store, create_object_storage

        return cls(
            storage=create_object_storage(settings),
            store=create_document_store(settings),
            service=create_analysis_service(settings),
            settings=settings,
        )

    @property
    def ledger(self) -> JobLedger:
        return self._ledger

    @property
    def service(self) -> IAnalysisService:
        return self._service

    async def analyze(
        self,
        source_path: str,
        owner_id: str,
        appointment_date: Any,
        context: Optional[AnalysisContext] = None,
        *,
        caller_id: Optional[str] = None,
    ) -> AnalysisOutcome:
        """Analyze one visit document for ``owner_id``.

        Args:
            source_path: Storage path of the uploaded visit document.
            owner_id: User who owns the document and the resulting summary.
            appointment_date: Visit date in any supported encoding.
            context: Optional profile hints for the instructions.
            caller_id: Authenticated caller; must equal ``owner_id``.

        Raises:
            PipelineError: Classified failure; ``category`` tells the caller
                whether to fix input, re-authenticate or retry.
        """
        run_id = new_run_id()
        start_run(run_id, owner_id=owner_id or "", source_path=source_path or "")
        try:
            outcome = await self._run(run_id, source_path, owner_id, appointment_date, context, caller_id)
        except Exception as exc:
            error = to_pipeline_error(exc)
            if isinstance(exc, VisitwiseError):
                log.warning(
                    "Visit analysis %s failed: %s [%s, retryable=%s]",
                    run_id, exc, error.category.value, error.retryable,
                )
            elif not isinstance(exc, PipelineError):
                log.exception("Visit analysis %s failed unexpectedly", run_id)
            self._finish("failed")
            raise error from exc

        self._finish("completed")
        return outcome

    async def _run(
        self,
        run_id: str,
        source_path: str,
        owner_id: str,
        appointment_date: Any,
        context: Optional[AnalysisContext],
        caller_id: Optional[str],
    ) -> AnalysisOutcome:
        with track_stage("validate"):
            appointment = self._validate(source_path, owner_id, appointment_date, caller_id)

        with track_stage("fetch"):
            artifact = await self._fetch(source_path)

        key = source_key(source_path)
        lock_held = False
        if self._settings.lock.enabled:
            with track_stage("lock"):
                lock_held = await self._locks.acquire(owner_id, key, run_id) is not None
        try:
            with track_stage("orchestrate"):
                raw_output = await self._orchestrator.run(
                    artifact,
                    build_instructions(context),
                    owner_id=owner_id,
                    run_id=run_id,
                )

            with track_stage("parse"):
                result = parse(raw_output)

            with track_stage("dedup"):
                resolution = await self._dedup.resolve(owner_id, appointment, source_path=source_path)

            with track_stage("persist"):
                written = await self._fanout.persist(
                    owner_id,
                    appointment,
                    result,
                    resolution.matched_id,
                    source_path=source_path,
                    run_id=run_id,
                )
        finally:
            if lock_held:
                await self._locks.release(owner_id, key, run_id)

        return AnalysisOutcome(
            summary_id=written.summary_id,
            formatted_summary=written.formatted_summary,
            action_items=written.action_items,
            learning_modules=written.learning_modules,
            flags=list(result.flags),
            updated_existing=written.updated_existing,
            run_id=run_id,
        )

    @staticmethod
    def _validate(
        source_path: str,
        owner_id: str,
        appointment_date: Any,
        caller_id: Optional[str],
    ) -> datetime:
        if not isinstance(source_path, str) or not source_path.strip():
            raise InputInvalidError("A source document reference is required")
        if not owner_id:
            raise InputInvalidError("An owner id is required")
        if appointment_date is None or (isinstance(appointment_date, str) and not appointment_date.strip()):
            raise InputInvalidError("An appointment date is required")
        if not caller_id:
            raise AuthorizationError("Caller is not authenticated")
        if caller_id != owner_id:
            raise AuthorizationError("Caller may not analyze documents for another user")
        try:
            return normalize_appointment(appointment_date)
        except (ValueError, TypeError, OverflowError) as e:
            raise InputInvalidError(f"Appointment date {appointment_date!r} is not a valid date") from e

    async def _fetch(self, source_path: str) -> SourceArtifact:
        if not await self._storage.exists(source_path):
            raise SourceNotFoundError(f"Source document not found: {source_path}")
        try:
            content = await self._storage.download(source_path)
        except KeyError as e:
            raise SourceNotFoundError(f"Source document not found: {source_path}") from e
        return SourceArtifact(path=source_path, content=content)

    @staticmethod
    def _finish(status: str) -> None:
        analytics = end_run(status)
        if analytics is None:
            return
        log.info(
            "Run %s %s in %.0f ms (%s)",
            analytics.run_id,
            analytics.status,
            analytics.total_duration_ms,
            ", ".join(f"{s.stage}={s.duration_ms:.0f}ms" for s in analytics.stages),
        )
