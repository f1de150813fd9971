from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
import logging

from .observability import REQUEST_ID_HEADER, log_ctx, log_ctx_json, request_id_of

logger = logging.getLogger("plyr-access-errors")

# Raised by the router itself, before any access endpoint runs.
_ROUTING_ERROR_CODES = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}


class AccessError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400, details: Optional[dict] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class SubscriptionFetchError(Exception):
    """Subscription store answered with something that is not a usable profile row."""


def error_response(
    request_id: str,
    status_code: int,
    code: str,
    message: str,
    details: Optional[dict] = None,
) -> JSONResponse:
    """`{"error": {code, message, details}}` envelope, tagged with the request id when there is one."""
    response = JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message, "details": details or {}}},
    )
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id
    return response


def validation_error_response(request_id: str, field_errors: list[dict]) -> JSONResponse:
    return error_response(request_id, 400, "VALIDATION_FAILED", "Invalid request", {"fieldErrors": field_errors})


def setup_error_handlers(app: FastAPI):
    @app.exception_handler(AccessError)
    async def access_error_handler(request: Request, exc: AccessError):
        return error_response(request_id_of(request), exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        field_errors = [
            {"field": ".".join(str(p) for p in error["loc"]), "issue": error["msg"]}
            for error in exc.errors()
        ]
        return validation_error_response(request_id_of(request), field_errors)

    @app.exception_handler(StarletteHTTPException)
    async def routing_error_handler(request: Request, exc: StarletteHTTPException):
        code = _ROUTING_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        message = exc.detail if isinstance(exc.detail, str) else "Error"
        return error_response(request_id_of(request), exc.status_code, code, message)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled exception context=%s",
            log_ctx_json(log_ctx(extra={"path": request.url.path, "status_code": 500})),
            exc_info=True,
        )
        return error_response(request_id_of(request), 500, "INTERNAL_ERROR", "Internal server error")
