"""Map business errors and validation failures to JSON error responses."""

from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.core import get_logger
from storefront.domain.errors import AuthenticationFailed, StoreError

logger = get_logger(__name__)


def _body(status: int, error: str, message: str) -> dict:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status,
        "error": error,
        "message": message,
    }


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    body = _body(exc.status_code, exc.error, exc.message)
    if exc.details:
        body["details"] = exc.details
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationFailed) else None
    logger.info(f"{exc.error} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = {}
    for err in exc.errors():
        # Drop the "body"/"query"/"path" prefix so keys read as field paths
        location = [str(part) for part in err.get("loc", ())[1:]]
        errors[".".join(location) or "request"] = err.get("msg", "Invalid value")
    body = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": 422,
        "error": "Validation Failed",
        "errors": errors,
    }
    return JSONResponse(status_code=422, content=body)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=_body(500, "Unexpected", "An unexpected error occurred"),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
