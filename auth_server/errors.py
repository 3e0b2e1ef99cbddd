"""
OAuth-style error responses: {"error": ..., "error_description": ...}.
Endpoints raise HTTPException with a dict detail; the handlers here put that dict at the top level.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def oauth_error(status_code: int, error: str, description: str, headers: dict[str, str] | None = None, **extra) -> HTTPException:
    detail = {"error": error, "error_description": description}
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail, headers=headers)


async def _oauth_http_exception(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        return JSONResponse(exc.detail, status_code=exc.status_code, headers=getattr(exc, "headers", None))
    return await http_exception_handler(request, exc)


async def _validation_error(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    return JSONResponse(
        {"error": "invalid_request", "error_description": f"Invalid parameter(s): {', '.join(fields)}"},
        status_code=400,
    )


async def _unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        {"error": "server_error", "error_description": "Internal server error"},
        status_code=500,
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _oauth_http_exception)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)
