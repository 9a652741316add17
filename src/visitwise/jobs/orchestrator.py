"""Job orchestrator: drives one external analysis job from upload to output.

Stages run strictly in sequence::

    SUBMITTED -> AWAITING_INGESTION -> EXECUTING -> COMPLETED
                        |                  |
                        +-> FAILED / TIMED_OUT / CANCELLED

Each wait point polls on a fixed interval with a hard attempt bound, so a
service that never reaches "ready" or "completed" ends the run with a
timeout error instead of hanging.  The uploaded artifact copy and the
execution context are deleted on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from visitwise.core.config import JobConfig
from visitwise.exceptions import (
    ExecutionCancelledError,
    ExecutionFailedError,
    ExecutionTimedOutError,
    IngestionFailedError,
    IngestionTimedOutError,
)
from visitwise.inference.protocols import ArtifactStatus, IAnalysisService, RunStatus, StatusReport
from visitwise.jobs.ledger import JobLedger
from visitwise.models import JobResource, JobState, SourceArtifact

log = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class JobOrchestrator:
    """Runs analysis jobs against an :class:`IAnalysisService`."""

    def __init__(
        self,
        service: IAnalysisService,
        config: JobConfig,
        *,
        ledger: Optional[JobLedger] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._service = service
        self._config = config
        self._ledger = ledger
        self._sleep = sleep

    async def run(
        self,
        artifact: SourceArtifact,
        instructions: str,
        *,
        owner_id: str = "",
        run_id: str = "",
    ) -> str:
        """Run the job to completion and return its raw text output.

        Raises:
            IngestionFailedError: Upload rejected or ingestion reported an error.
            IngestionTimedOutError: Artifact not ready within the ingestion bound.
            ExecutionFailedError: Run failed, could not start, or produced no output.
            ExecutionTimedOutError: Run not complete within the execution bound.
            ExecutionCancelledError: Run cancelled on the service side.
        """
        resource = JobResource(run_id=run_id, owner_id=owner_id)
        try:
            resource.artifact_id = await self._submit(artifact)
            await self._track(resource)

            self._transition(resource, JobState.AWAITING_INGESTION)
            await self._await_ingestion(resource.artifact_id)

            self._transition(resource, JobState.EXECUTING)
            resource.context_id = await self._create_context(resource.artifact_id, instructions)
            await self._track(resource)
            execution_id = await self._start_execution(resource.context_id)
            await self._await_completion(resource.context_id, execution_id)

            output = await self._fetch_output(resource.context_id, execution_id)
            self._transition(resource, JobState.COMPLETED)
            return output
        except (IngestionTimedOutError, ExecutionTimedOutError):
            self._transition(resource, JobState.TIMED_OUT)
            raise
        except ExecutionCancelledError:
            self._transition(resource, JobState.CANCELLED)
            raise
        except Exception:
            self._transition(resource, JobState.FAILED)
            raise
        finally:
            await self._cleanup(resource)

    # ── Stages ───────────────────────────────────────────────────────

    async def _submit(self, artifact: SourceArtifact) -> str:
        try:
            artifact_id = await self._service.upload_artifact(artifact.filename, artifact.content)
        except Exception as e:
            raise IngestionFailedError(f"Artifact upload failed: {e}") from e
        log.info("Submitted %s as artifact %s", artifact.path, artifact_id)
        return artifact_id

    async def _await_ingestion(self, artifact_id: str) -> None:
        max_attempts = self._config.ingestion_max_attempts
        for attempt in range(1, max_attempts + 1):
            report = await self._probe(self._service.get_artifact_status(artifact_id), "ingestion", attempt)
            if report is not None:
                if report.status == ArtifactStatus.READY:
                    log.info("Artifact %s ready after %d poll(s)", artifact_id, attempt)
                    return
                if report.status == ArtifactStatus.FAILED:
                    raise IngestionFailedError(
                        f"Artifact {artifact_id} failed ingestion: {report.detail or 'no detail'}"
                    )
            if attempt < max_attempts:
                await self._sleep(self._config.ingestion_poll_interval)

        raise IngestionTimedOutError(
            f"Artifact {artifact_id} not ready after {max_attempts} attempts"
        )

    async def _create_context(self, artifact_id: str, instructions: str) -> str:
        try:
            return await self._service.create_context(artifact_id, instructions)
        except Exception as e:
            raise ExecutionFailedError(f"Could not create execution context: {e}") from e

    async def _start_execution(self, context_id: str) -> str:
        try:
            execution_id = await self._service.start_execution(context_id)
        except Exception as e:
            raise ExecutionFailedError(f"Could not start execution: {e}") from e
        log.info("Started execution %s in context %s", execution_id, context_id)
        return execution_id

    async def _await_completion(self, context_id: str, execution_id: str) -> None:
        max_attempts = self._config.execution_max_attempts
        for attempt in range(1, max_attempts + 1):
            report = await self._probe(
                self._service.get_execution_status(context_id, execution_id), "execution", attempt
            )
            if report is not None:
                if report.status == RunStatus.COMPLETED:
                    log.info("Execution %s completed after %d poll(s)", execution_id, attempt)
                    return
                if report.status == RunStatus.FAILED:
                    raise ExecutionFailedError(
                        f"Execution {execution_id} failed: {report.detail or 'no detail'}"
                    )
                if report.status == RunStatus.CANCELLED:
                    raise ExecutionCancelledError(f"Execution {execution_id} was cancelled")
                if report.status == RunStatus.EXPIRED:
                    raise ExecutionTimedOutError(f"Execution {execution_id} expired on the service")
            if attempt < max_attempts:
                await self._sleep(self._config.execution_poll_interval)

        raise ExecutionTimedOutError(
            f"Execution {execution_id} not complete after {max_attempts} attempts"
        )

    async def _fetch_output(self, context_id: str, execution_id: str) -> str:
        try:
            output = await self._service.fetch_output(context_id, execution_id)
        except Exception as e:
            raise ExecutionFailedError(f"Could not fetch output of {execution_id}: {e}") from e
        if not output or not output.strip():
            raise ExecutionFailedError(f"Execution {execution_id} produced no output")
        return output

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    async def _probe(call: Awaitable[StatusReport], stage: str, attempt: int) -> Optional[StatusReport]:
        """Await one status poll; a transport error costs the attempt but not the job."""
        try:
            return await call
        except Exception as e:
            log.warning("%s status poll %d failed: %s", stage.capitalize(), attempt, e)
            return None

    @staticmethod
    def _transition(resource: JobResource, state: JobState) -> None:
        log.debug("Job %s: %s -> %s", resource.run_id or "-", resource.state.value, state.value)
        resource.state = state

    async def _track(self, resource: JobResource) -> None:
        if self._ledger is not None:
            await self._ledger.record(resource)

    async def _cleanup(self, resource: JobResource) -> None:
        """Release job-scoped external resources; failures are logged, never raised."""
        released = True
        if resource.context_id:
            try:
                await self._service.delete_context(resource.context_id)
            except Exception:
                released = False
                log.warning("Failed to delete execution context %s", resource.context_id, exc_info=True)
        if resource.artifact_id:
            try:
                await self._service.delete_artifact(resource.artifact_id)
            except Exception:
                released = False
                log.warning("Failed to delete artifact %s", resource.artifact_id, exc_info=True)

        if self._ledger is None or not resource.artifact_id:
            return
        if released:
            await self._ledger.remove(resource)
        else:
            # Leave the entry for the sweeper
            await self._ledger.record(resource)
