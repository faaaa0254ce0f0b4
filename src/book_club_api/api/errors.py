"""
Exception handlers mapping failures to the JSON error envelope.

Every error response has the shape ``{"message": ..., "errors"?: [...]}``.
Domain exceptions map to status codes by class; anything unexpected becomes
a 500 whose detail is only revealed in development.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..database import (
    DuplicateError,
    InvalidCredentialError,
    InvalidIdError,
    InvalidStateError,
    NotFoundError,
    NotOwnerError,
    RepositoryException,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[RepositoryException], int] = {
    ValidationFailedError: status.HTTP_400_BAD_REQUEST,
    InvalidIdError: status.HTTP_400_BAD_REQUEST,
    InvalidCredentialError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidStateError: status.HTTP_409_CONFLICT,
    NotOwnerError: status.HTTP_409_CONFLICT,
    DuplicateError: status.HTTP_409_CONFLICT,
}


def format_validation_errors(errors: list[dict]) -> list[dict]:
    """Reduce Pydantic error dicts to field, message and type."""
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        # Drop the request part ("body", "query", "path") from the location
        if len(loc) > 1 and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        message = error.get("msg", "")
        formatted.append(
            {
                "field": ".".join(loc),
                "message": message.removeprefix("Value error, "),
                "type": error.get("type", "value_error"),
            }
        )
    return formatted


def _validation_response(errors: list[dict]) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation failed", "errors": format_validation_errors(errors)},
    )


def validation_error_response(exc: ValidationError) -> JSONResponse:
    """400 envelope for a model a route validates itself."""
    return _validation_response(exc.errors(include_url=False, include_context=False))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("Validation failed for %s %s", request.method, request.url.path)
    return _validation_response(exc.errors())


async def repository_error_handler(request: Request, exc: RepositoryException):
    status_code = next(
        (code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    logger.info(
        "%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc
    )
    return JSONResponse(status_code=status_code, content={"message": str(exc)})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"message": "Route not found"}
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    settings = request.app.state.settings
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "message": "Something went wrong!",
            "error": str(exc) if settings.is_development else "Internal server error",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(RepositoryException, repository_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
