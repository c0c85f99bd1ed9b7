import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from papershelf.errors import (
    ConfigurationError,
    NoPdfAvailable,
    NotFoundError,
    PaperShelfError,
    Unauthorized,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    NotFoundError: 404,
    Unauthorized: 401,
    NoPdfAvailable: 409,
    ConfigurationError: 503,
}


def _status_for(exc: Exception) -> int:
    for exc_type, status in STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return status
    return 500


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PaperShelfError)
    async def papershelf_error_handler(request: Request, exc: PaperShelfError):
        status = _status_for(exc)
        if status >= 500:
            logger.error(f"❌ {request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status,
            content={"detail": str(exc), "error_type": type(exc).__name__},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})
