"""Pluggable analysis service layer.

Usage::

    from visitwise.inference import IAnalysisService, create_analysis_service
"""

from __future__ import annotations

from visitwise.inference.factory import create_analysis_service
from visitwise.inference.protocols import ArtifactStatus, IAnalysisService, RunStatus, StatusReport

__all__ = [
    "ArtifactStatus",
    "IAnalysisService",
    "RunStatus",
    "StatusReport",
    "create_analysis_service",
]
