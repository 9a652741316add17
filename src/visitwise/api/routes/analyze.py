"""Visit analysis endpoint."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from visitwise.api.auth import require_caller
from visitwise.models import AnalysisContext, AnalysisOutcome

router = APIRouter(tags=["visits"])


class AnalyzeRequest(BaseModel):
    """Request to analyze one uploaded visit document.

    Missing fields are reported by the pipeline as validation errors rather
    than by request parsing, so every failure has the same error body.
    """

    source_path: str = ""
    appointment_date: str = ""
    owner_id: Optional[str] = Field(default=None, description="Defaults to the caller")
    context: AnalysisContext = Field(default_factory=AnalysisContext)


@router.post("/visits/analyze", response_model=AnalysisOutcome)
async def analyze_visit(
    body: AnalyzeRequest,
    request: Request,
    caller_id: str = Depends(require_caller),
) -> AnalysisOutcome:
    """Run the visit analysis pipeline and return the saved summary."""
    pipeline = request.app.state.pipeline
    return await pipeline.analyze(
        body.source_path,
        body.owner_id or caller_id,
        body.appointment_date,
        body.context,
        caller_id=caller_id,
    )
