"""
Error taxonomy and the exception handlers that render it.

Every error leaves the API in the same envelope as a successful response:
``{"status": "fail" | "error", "message": "..."}``. Client errors (4xx) are
``fail``, server errors (5xx) are ``error``.
"""
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(HTTPException):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(status_code=status_code or self.status_code, detail=message)

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(AppError):
    status_code = 400


class ConflictError(AppError):
    status_code = 400


class AuthenticationError(AppError):
    status_code = 401


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class DependencyError(AppError):
    status_code = 500


def envelope(status_code: int, message: str) -> JSONResponse:
    status = "fail" if status_code < 500 else "error"
    return JSONResponse(status_code=status_code, content={"status": status, "message": message})


def format_errors(errors) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        msg = err.get("msg", "Invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid input data"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and not isinstance(exc, AppError) and exc.detail == "Not Found":
        return envelope(404, f"Can't find {request.url.path} on this server!")
    return envelope(exc.status_code, str(exc.detail))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return envelope(400, format_errors(exc.errors()))


async def model_validation_handler(request: Request, exc: PydanticValidationError):
    return envelope(400, format_errors(exc.errors()))


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    fields = ", ".join((exc.details or {}).get("keyValue", {}) or []) or "field"
    return envelope(400, f"Duplicate {fields} value. Please use another value!")


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return envelope(500, "Something went wrong!")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PydanticValidationError, model_validation_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
