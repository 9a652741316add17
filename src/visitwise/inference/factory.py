"""Analysis service factory: resolves the backend from config."""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, Any

from visitwise.inference.protocols import IAnalysisService

if TYPE_CHECKING:
    from visitwise.core.config import AppSettings

log = logging.getLogger(__name__)


def _import_dotted_path(path: str) -> Any:
    """Import ``package.module:Attr`` (or ``package.module.Attr``)."""
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ImportError(f"Invalid dotted path {path!r}; expected 'module:Attr'")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ImportError(f"{module_name!r} has no attribute {attr!r}") from e


def create_analysis_service(settings: AppSettings) -> IAnalysisService:
    """Create an analysis service based on settings.

    When ``settings.llm.backend`` is ``"openai"``, returns the built-in
    :class:`OpenAIAnalysisService`.  When it's a dotted path like
    ``mypackage.backends:BedrockAgentBackend``, imports and instantiates the
    external class, passing ``settings`` to the constructor.

    Raises:
        ImportError: If the dotted-path class cannot be found.
        TypeError: If the resolved object is not callable.
    """
    backend_spec = settings.llm.backend

    if backend_spec == "openai":
        from visitwise.inference.openai_backend import OpenAIAnalysisService

        log.info("Using built-in OpenAIAnalysisService")
        return OpenAIAnalysisService(settings)

    log.info("Loading external analysis backend: %s", backend_spec)
    cls = _import_dotted_path(backend_spec)
    if not callable(cls):
        raise TypeError(
            f"Analysis backend {backend_spec!r} resolved to {cls!r}, which is not callable"
        )
    return cls(settings)
