from typing import Any, Dict, Optional
from fastapi import FastAPI, HTTPException, Request,status
from fastapi.exceptions import RequestValidationError
from storefront.common import logger
from storefront.common.constants import GENERIC_SERVER_ERROR, request_id_ctx
from storefront.common.utils import build_error, json_error


class StorefrontError(Exception):
    """Base for every error the storefront raises on purpose."""
    code = "STOREFRONT_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> Dict[str, Any]:
        return {"message": self.message}


class InputValidationError(StorefrontError):
    """Rejected before any network call; field_errors maps form field -> message."""
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = dict(field_errors or {})

    def details(self) -> Dict[str, Any]:
        return {"message": self.message, "fields": self.field_errors}


class BusinessRejection(StorefrontError):
    """Well formed request refused by shop rules (bad coupon, wrong credentials ...)."""
    code = "BUSINESS_REJECTION"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class NotAuthenticated(BusinessRejection):
    code = "NOT_AUTHENTICATED"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Please sign in to continue."):
        super().__init__(message)


class TransportError(StorefrontError):
    """Remote shop api unreachable, timed out or answered with a non-2xx status."""
    code = "UPSTREAM_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, upstream_status: Optional[int] = None,
                 payload: Any = None, timeout: bool = False):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.payload = payload
        self.timeout = timeout
        if timeout:
            self.status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def details(self) -> Dict[str, Any]:
        return {"message": self.message, "upstream_status": self.upstream_status}


class StorageError(StorefrontError):
    """Storage tier unavailable, full or corrupt. Callers log and degrade."""
    code = "STORAGE_ERROR"


async def storefront_error_handler(request: Request, exc: StorefrontError):
    rid = request_id_ctx.get(None)

    logger.warning(
        "request.storefront_error",
        extra={
            "code": exc.code,
            "path": request.url.path,
            "reason": exc.message,
        },
    )

    payload = build_error(code=exc.code, details=exc.details(), request_id=rid)
    return json_error(payload, status_code=exc.status_code)


async def fallback_handler(request: Request, exc: Exception):

    rid = request_id_ctx.get(None)

    logger.error(
        "unexpected.exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=exc,
    )

    payload = build_error(code="SERVER_ERROR", details={"message": GENERIC_SERVER_ERROR}, request_id=rid)
    return json_error(payload, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = request_id_ctx.get(None)
    logger.warning(
        "request.validation_failed",
        extra={
            "errors": exc.errors(),
            "path": request.url.path,
        },
    )

    fields = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        if loc:
            fields[".".join(loc)] = err.get("msg", "invalid value")

    payload = build_error(code="UNPROCESSABLE_ENTITY", details={"message": "invalid request", "fields": fields},
                          request_id=rid)
    return json_error(payload, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


async def http_exception_handler(request: Request, exc: HTTPException):

    rid = request_id_ctx.get(None)

    payload = build_error(code=f"HTTP_{exc.status_code}", details={"message": exc.detail}, request_id=rid)
    return json_error(payload, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_all_exceptions(app: FastAPI):

    app.add_exception_handler(
        Exception, # catch all unidentified/unhandled exceptions
        fallback_handler
    )

    app.add_exception_handler(
        StorefrontError,
        storefront_error_handler
    )

    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler
    )

    app.add_exception_handler(
        HTTPException,
        http_exception_handler
    )
