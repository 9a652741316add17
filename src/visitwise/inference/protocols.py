"""Analysis service protocol: the contract every job backend implements.

The external service is poll-based and file-oriented.  Keeping polling in
the orchestrator and only single-shot calls here means a push/webhook
backend can replace this one without touching anything downstream.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class ArtifactStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


@dataclass
class StatusReport:
    """One poll result: an ``ArtifactStatus``/``RunStatus`` value plus any service detail."""

    status: str
    detail: str = ""


@runtime_checkable
class IAnalysisService(Protocol):
    """Asynchronous, file-oriented analysis job API."""

    async def upload_artifact(self, filename: str, content: bytes) -> str:
        """Hand the source document to the service. Returns the artifact id."""
        ...

    async def get_artifact_status(self, artifact_id: str) -> StatusReport:
        """Report ingestion progress as an :class:`ArtifactStatus`."""
        ...

    async def create_context(self, artifact_id: str, instructions: str) -> str:
        """Create the execution context holding the artifact and instructions. Returns its id."""
        ...

    async def start_execution(self, context_id: str) -> str:
        """Start a run in the context. Returns the run id."""
        ...

    async def get_execution_status(self, context_id: str, run_id: str) -> StatusReport:
        """Report run progress as a :class:`RunStatus`."""
        ...

    async def fetch_output(self, context_id: str, run_id: str) -> str:
        """Return the text produced by a completed run."""
        ...

    async def delete_artifact(self, artifact_id: str) -> None:
        ...

    async def delete_context(self, context_id: str) -> None:
        ...
