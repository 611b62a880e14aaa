import logging

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


class DomainError(HTTPException):
    """Base for NDA domain failures that surface as structured HTTP errors."""

    status_code = 400
    code = "domain_error"

    def __init__(
        self, message: str, details=None, status_code: int | None = None
    ) -> None:
        self.message = message
        self.details = details
        super().__init__(
            status_code=status_code or type(self).status_code,
            detail=_error_payload(self.code, message, details),
        )


class NotFound(DomainError):
    status_code = 404
    code = "not_found"


class InvalidTransition(DomainError):
    status_code = 409
    code = "invalid_transition"


class StaleState(DomainError):
    status_code = 409
    code = "stale_state"


class DuplicateActiveRequest(DomainError):
    status_code = 409
    code = "duplicate_active_request"


class InvalidState(DomainError):
    status_code = 409
    code = "invalid_state"


class ValidationError(DomainError):
    status_code = 400
    code = "validation_error"


class Forbidden(DomainError):
    status_code = 403
    code = "forbidden"


class NotificationFailure(Exception):
    """Email delivery failed. Never propagated past the notifier."""


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=jsonable_encoder(
                _error_payload("validation_error", "Validation error", errors)
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
