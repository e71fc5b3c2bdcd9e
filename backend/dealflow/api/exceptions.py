from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Optional, Dict, Any
import logging

from ..services.exceptions import ErrorCode, ServiceError
from ..utils.request_context import get_request_id

logger = logging.getLogger(__name__)

# Service error code -> HTTP status
HTTP_STATUS_BY_CODE = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DUPLICATE_APPLICATION: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.ALREADY_ACTED: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_SIGNABLE: status.HTTP_409_CONFLICT,
    ErrorCode.ACCEPT_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.DEAL_CREATION_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.STORAGE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class APIException(HTTPException):
    """Base API exception"""
    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.details = details or {}


class AuthenticationException(APIException):
    """Authentication error exception"""
    def __init__(self, detail: str = "Invalid authentication credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=ErrorCode.UNAUTHORIZED.value,
            headers={"WWW-Authenticate": "Bearer"}
        )


class AuthorizationException(APIException):
    """Authorization error exception"""
    def __init__(self, detail: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=ErrorCode.FORBIDDEN.value
        )


def error_envelope(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"data": None, "error": {"code": code, "message": message, "details": details or {}}}


def service_error_response(error: ServiceError) -> JSONResponse:
    """Translate a service error into the `{data, error}` response"""
    status_code = HTTP_STATUS_BY_CODE.get(error.error_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    body = error.to_dict()
    if status_code >= 500:
        body["details"] = {**body["details"], "request_id": get_request_id()}
    return JSONResponse(status_code=status_code, content={"data": None, "error": body})


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    if HTTP_STATUS_BY_CODE.get(exc.error_code, 500) >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}", exc_info=exc.__cause__)
    return service_error_response(exc)


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_envelope(exc.error_code or "ERROR", str(exc.detail), exc.details),
        headers=exc.headers,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    violations = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        violations.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_envelope(ErrorCode.VALIDATION_ERROR.value, "Invalid request", {"violations": violations}),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_envelope(
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred while processing your request",
            {"request_id": get_request_id()},
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
