"""Ambient hooks: structured logging and per-run stage tracking."""

from __future__ import annotations

from visitwise.hooks.logging_config import setup_logging
from visitwise.hooks.run_tracker import end_run, get_current_run, new_run_id, start_run, track_stage

__all__ = [
    "end_run",
    "get_current_run",
    "new_run_id",
    "setup_logging",
    "start_run",
    "track_stage",
]
