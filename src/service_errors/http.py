"""HTTP mapping for declared errors.

Services raise declared errors and stay transport-agnostic. The handlers
registered here turn them into the standard error envelope:
{"error": {"code": "<error name>", "message": "...", "fields": {...}}}.
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from service_errors.config import Settings
from service_errors.errors import CustomError, StatusCode
from service_errors.logging import get_logger
from service_errors.schemas.error import ErrorDetail, ErrorResponse

logger = get_logger(__name__)

_NO_TRACE = {"error": {"trace"}}


def status_for(exc: BaseException) -> StatusCode:
    """Response status for an exception. Anything unknown or missing is a 500."""
    return StatusCode.coerce(getattr(exc, "status", None))


def error_envelope(exc: CustomError, *, expose_trace: bool = False) -> dict[str, object]:
    """Build the standard error envelope as a dict for JSONResponse."""
    detail = ErrorDetail(
        code=exc.name,
        message=exc.message,
        fields=jsonable_encoder(exc.fields),
        trace=exc.stack if expose_trace else None,
    )
    return ErrorResponse(error=detail).model_dump(exclude=None if expose_trace else _NO_TRACE)


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Register the declared-error handlers on the FastAPI application."""

    @app.exception_handler(CustomError)
    async def declared_error_handler(request: Request, exc: CustomError) -> JSONResponse:
        """Answer with the error's own status and name."""
        status = status_for(exc)
        if status >= StatusCode.INTERNAL_ERROR:
            logger.error(
                "declared_error",
                error=exc.name,
                status=int(status),
                path=request.url.path,
                stack=exc.stack,
            )
        else:
            logger.warning("declared_error", error=exc.name, status=int(status), path=request.url.path)
        return JSONResponse(
            status_code=status,
            content=error_envelope(exc, expose_trace=settings.expose_error_traces),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log unhandled exceptions and return a safe error response."""
        logger.exception("unhandled_exception", path=request.url.path, method=request.method)
        return JSONResponse(
            status_code=StatusCode.INTERNAL_ERROR,
            content=ErrorResponse(
                error=ErrorDetail(code="internal_error", message="Internal server error")
            ).model_dump(exclude=_NO_TRACE),
        )
