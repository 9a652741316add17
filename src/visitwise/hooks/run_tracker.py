"""Per-run analytics tracker using ContextVars.

Opt-in and zero overhead when no run is active.  Each pipeline invocation
runs in its own asyncio task, so the ContextVar keeps concurrent runs apart.

Usage::

    analytics = start_run(run_id="abc123", owner_id="u1")
    with track_stage("orchestrate") as stage:
        ...
    analytics = end_run()
    print(analytics.total_duration_ms)
"""

from __future__ import annotations

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

import structlog

from visitwise.models import RunAnalytics, StageMetrics, utcnow

_current_run: ContextVar[Optional[RunAnalytics]] = ContextVar("visitwise_current_run", default=None)


def new_run_id() -> str:
    return uuid.uuid4().hex[:12]


def get_current_run() -> RunAnalytics | None:
    """Get the active RunAnalytics, or None if no run is active."""
    return _current_run.get()


def start_run(run_id: str | None = None, *, owner_id: str = "", source_path: str = "") -> RunAnalytics:
    """Create and activate a new RunAnalytics for the current context."""
    analytics = RunAnalytics(
        run_id=run_id or new_run_id(),
        owner_id=owner_id,
        source_path=source_path,
        started_at=utcnow(),
    )
    _current_run.set(analytics)
    structlog.contextvars.bind_contextvars(run_id=analytics.run_id)
    return analytics


def end_run(status: str | None = None) -> RunAnalytics | None:
    """Finalize the current run and return its analytics. Returns None if no run is active."""
    analytics = _current_run.get()
    if analytics is None:
        return None

    if status is not None:
        analytics.status = status
    analytics.finalize()
    _current_run.set(None)
    structlog.contextvars.unbind_contextvars("run_id")
    return analytics


@contextmanager
def track_stage(name: str) -> Generator[StageMetrics, None, None]:
    """Record a StageMetrics entry on the current run.

    An exception escaping the block marks the stage ``error`` and is
    re-raised.  No-op bookkeeping if no run is active.
    """
    analytics = _current_run.get()
    stage = StageMetrics(stage=name, started_at=utcnow())
    structlog.contextvars.bind_contextvars(stage=name)

    try:
        yield stage
    except BaseException as exc:
        stage.status = "error"
        stage.error = type(exc).__name__
        raise
    finally:
        stage.ended_at = utcnow()
        if stage.started_at:
            stage.duration_ms = (stage.ended_at - stage.started_at).total_seconds() * 1000
        if analytics is not None:
            analytics.stages.append(stage)
        structlog.contextvars.unbind_contextvars("stage")
