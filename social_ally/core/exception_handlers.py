import logging
import traceback
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import AllyError

logger = logging.getLogger("social_ally")


def _request_context(request: Request) -> Dict[str, Any]:
    client = request.client.host if request.client else "-"
    return {
        "method": request.method,
        # Callback query strings carry authorization codes
        "path": request.url.path,
        "client": client,
    }


async def handle_ally_error(request: Request, exc: AllyError):
    ctx = _request_context(request)
    message = (
        f"[{type(exc).__name__}] {ctx['method']} {ctx['path']} from {ctx['client']}"
        f" -> {exc.status_code}: {exc.message}"
    )
    if exc.status_code >= 500:
        logger.error(message)
    else:
        logger.warning(message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def handle_validation_error(request: Request, exc: RequestValidationError):
    ctx = _request_context(request)
    logger.warning(
        f"[ValidationError] {ctx['method']} {ctx['path']} from {ctx['client']} -> 422: {exc.errors()}"
    )
    content = {
        "success": False,
        "error": {
            "code": "VALIDATION_001",
            "message": "Validation failed",
            "details": {"errors": exc.errors()},
        },
    }
    return JSONResponse(status_code=422, content=content)


async def handle_unexpected_error(request: Request, exc: Exception):
    ctx = _request_context(request)
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[Unhandled Error] {ctx['method']} {ctx['path']} from {ctx['client']}\n"
        f"Exception Type: {type(exc).__name__}\n"
        f"Full Stack Trace:\n{tb_str}"
    )
    content = {
        "success": False,
        "error": {"code": "INTERNAL_001", "message": "Internal server error", "details": {}},
    }
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AllyError, handle_ally_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)
