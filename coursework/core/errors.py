from fastapi import FastAPI, HTTPException, Request, status as fastapi_status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from coursework.core.logger import get_logger
from coursework.core.response import format_response

logger = get_logger("errors")


class ServiceError(HTTPException):
    """
    Base class for every failure a service can raise.

    The HTTP status lives on the class, `code` is the machine-readable reason
    (e.g. "AlreadyEnrolled") that bulk operations and clients key on.
    """

    status_code = fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "Error"

    def __init__(self, code: str = None, detail: str = None):
        self.code = code or self.default_code
        super().__init__(status_code=type(self).status_code, detail=detail or self.code)


class NotFoundError(ServiceError):
    status_code = fastapi_status.HTTP_404_NOT_FOUND
    default_code = "NotFound"


class ConflictError(ServiceError):
    status_code = fastapi_status.HTTP_409_CONFLICT
    default_code = "Conflict"


class InvalidStateError(ServiceError):
    status_code = fastapi_status.HTTP_400_BAD_REQUEST
    default_code = "InvalidState"


class BadRequestError(ServiceError):
    status_code = fastapi_status.HTTP_400_BAD_REQUEST
    default_code = "BadRequest"


class ForbiddenError(ServiceError):
    status_code = fastapi_status.HTTP_403_FORBIDDEN
    default_code = "Forbidden"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = getattr(exc, "code", None)
    errors = [{"code": code, "message": exc.detail}] if code else None
    return JSONResponse(
        status_code=exc.status_code,
        content=format_response(exc.status_code, str(exc.detail), errors=errors),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "path": ".".join(str(part) for part in err.get("loc", ())),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=fastapi_status.HTTP_400_BAD_REQUEST,
        content=format_response(fastapi_status.HTTP_400_BAD_REQUEST, "Validation failed", errors=errors),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=format_response(fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
