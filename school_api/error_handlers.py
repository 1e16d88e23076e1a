from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import ConflictError, DomainError
from .logger import get_logger

logger = get_logger("errors")


def register_exception_handlers(app):
    """
    Register global exception handlers for standardized error responses.

    Every error body carries ``error``, ``detail`` and ``path``; conflicts
    additionally carry the colliding bookings under ``conflicts``.
    """

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        content = {
            "error": exc.error,
            "detail": exc.message,
            "path": str(request.url.path),
        }
        if exc.details:
            content["details"] = exc.details
        if isinstance(exc, ConflictError):
            content["conflicts"] = jsonable_encoder(exc.conflicts)
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Missing or malformed fields are client errors (400), like domain validation
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation error",
                "detail": "Invalid request data",
                "path": str(request.url.path),
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        logger.warning("Integrity violation on %s: %s", request.url.path, exc.orig)
        return JSONResponse(
            status_code=409,
            content={
                "error": "Conflict",
                "detail": "Resource conflicts with an existing record",
                "path": str(request.url.path),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": "HTTP error",
                "detail": exc.detail,
                "path": str(request.url.path),
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": "An unexpected error occurred",
                "path": str(request.url.path),
            },
        )
