"""OpenAI Assistants backend: files, threads and runs via the async client."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI

from visitwise.inference.protocols import ArtifactStatus, RunStatus, StatusReport

if TYPE_CHECKING:
    from visitwise.core.config import AppSettings

log = logging.getLogger(__name__)

_FILE_STATUS = {
    "processed": ArtifactStatus.READY,
    "error": ArtifactStatus.FAILED,
}

_RUN_STATUS = {
    "queued": RunStatus.PENDING,
    "in_progress": RunStatus.RUNNING,
    "completed": RunStatus.COMPLETED,
    "failed": RunStatus.FAILED,
    "incomplete": RunStatus.FAILED,
    # The analysis assistant has no tools that need client output
    "requires_action": RunStatus.FAILED,
    "cancelling": RunStatus.CANCELLED,
    "cancelled": RunStatus.CANCELLED,
    "expired": RunStatus.EXPIRED,
}


class OpenAIAnalysisService:
    """Runs the visit analysis on a pre-configured OpenAI assistant with file search."""

    def __init__(self, settings: AppSettings, client: Any | None = None) -> None:
        config = settings.llm
        self._assistant_id = config.assistant_id
        self._model = config.model
        if client is not None:
            self._client = client
        else:
            self._client = AsyncOpenAI(
                api_key=config.api_key,
                base_url=config.base_url or None,
                timeout=config.timeout,
            )

    async def upload_artifact(self, filename: str, content: bytes) -> str:
        uploaded = await self._client.files.create(file=(filename, content), purpose="assistants")
        log.info("Uploaded %s as %s", filename, uploaded.id)
        return uploaded.id

    async def get_artifact_status(self, artifact_id: str) -> StatusReport:
        info = await self._client.files.retrieve(artifact_id)
        status = _FILE_STATUS.get(info.status or "", ArtifactStatus.PENDING)
        return StatusReport(status=status.value, detail=getattr(info, "status_details", None) or "")

    async def create_context(self, artifact_id: str, instructions: str) -> str:
        thread = await self._client.beta.threads.create(
            messages=[
                {
                    "role": "user",
                    "content": instructions,
                    "attachments": [{"file_id": artifact_id, "tools": [{"type": "file_search"}]}],
                }
            ]
        )
        return thread.id

    async def start_execution(self, context_id: str) -> str:
        run = await self._client.beta.threads.runs.create(
            thread_id=context_id,
            assistant_id=self._assistant_id,
            model=self._model,
        )
        return run.id

    async def get_execution_status(self, context_id: str, run_id: str) -> StatusReport:
        run = await self._client.beta.threads.runs.retrieve(run_id, thread_id=context_id)
        status = _RUN_STATUS.get(run.status, RunStatus.RUNNING)
        detail = ""
        if run.last_error is not None:
            detail = f"{run.last_error.code}: {run.last_error.message}"
        elif run.incomplete_details is not None:
            detail = str(run.incomplete_details.reason)
        return StatusReport(status=status.value, detail=detail)

    async def fetch_output(self, context_id: str, run_id: str) -> str:
        page = await self._client.beta.threads.messages.list(
            thread_id=context_id,
            run_id=run_id,
            order="desc",
            limit=10,
        )
        for message in page.data:
            if message.role != "assistant":
                continue
            parts = [block.text.value for block in message.content if block.type == "text"]
            if parts:
                return "\n".join(parts)
        return ""

    async def delete_artifact(self, artifact_id: str) -> None:
        await self._client.files.delete(artifact_id)

    async def delete_context(self, context_id: str) -> None:
        await self._client.beta.threads.delete(context_id)
