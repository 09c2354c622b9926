"""Error Handlers: global exception handlers for the composed API.

Invariants:
    - ApiServerError -> structured JSON with error code, message, severity
    - Exception (catch-all) -> never leaks internal details
    - Both log through the injected logger, with the request path attached

Design Decisions:
    - Two-layer handler: apiserver errors (typed envelope), catch-all (Exception)
    - Registered by the router builder so every composed app gets them
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from apiserver.core.errors import ApiServerError, ErrorSeverity


def register_error_handlers(app: FastAPI, logger: logging.Logger) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_api_server_error_handler(app, logger)
    _register_generic_error_handler(app, logger)


def _register_api_server_error_handler(
    app: FastAPI, logger: logging.Logger,
) -> None:
    @app.exception_handler(ApiServerError)
    async def api_server_error_handler(request: Request, exc: ApiServerError):
        """Handle all typed apiserver errors raised while serving a request."""
        level = (
            logging.WARNING if exc.severity is ErrorSeverity.WARNING else logging.ERROR
        )
        logger.log(
            level,
            f"{type(exc).__name__}: {exc.message}",
            extra={
                "error_code": exc.code,
                "path": request.url.path,
                "method": request.method,
            },
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_generic_error_handler(
    app: FastAPI, logger: logging.Logger,
) -> None:
    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all: never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
            extra={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                    "severity": ErrorSeverity.CRITICAL.value,
                },
            },
        )
