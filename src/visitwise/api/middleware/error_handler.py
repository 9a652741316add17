"""Global exception handlers mapping pipeline errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from visitwise.exceptions import ErrorCategory, PipelineError

STATUS_BY_CATEGORY: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.AUTHENTICATION: 403,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.TIMEOUT: 504,
    ErrorCategory.TRANSIENT_SERVICE: 503,
    ErrorCategory.INTERNAL: 500,
}


def register_error_handlers(app: FastAPI) -> None:
    """Register exception-to-HTTP-status mappings."""

    @app.exception_handler(PipelineError)
    async def handle_pipeline_error(request: Request, exc: PipelineError) -> JSONResponse:
        status = STATUS_BY_CATEGORY.get(exc.category, 500)
        headers = {"Retry-After": "30"} if exc.retryable else None
        return JSONResponse(status_code=status, content=exc.to_dict(), headers=headers)
