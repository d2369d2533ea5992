"""
Custom exceptions and handlers for consistent API error responses.

Only validation and persistence failures ever reach a submitter. Classifier
trouble is a result value (see ClassifierFailure) and side-effect trouble is
raised as SideEffectError and swallowed by the dispatcher.
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from typing import Any, Dict, List, Optional
import logging

logger = logging.getLogger(__name__)


class APIError(HTTPException):
    """Base API error with consistent structure"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIError):
    """Resource not found error"""

    def __init__(
        self, detail: str = "Resource not found", error_code: str = "NOT_FOUND"
    ):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND, detail=detail, error_code=error_code
        )


class ValidationError(APIError):
    """Input rejected before any write; carries every violation found"""

    def __init__(
        self,
        detail: str = "Validation failed",
        errors: Optional[List[str]] = None,
        error_code: str = "VALIDATION_ERROR",
    ):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code,
        )
        self.errors = errors or []


class StoreError(APIError):
    """Persistence layer unavailable or rejected a write"""

    def __init__(
        self,
        detail: str = "Fact store unavailable",
        error_code: str = "STORE_UNAVAILABLE",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ):
        super().__init__(
            status_code=status_code,
            detail=detail,
            error_code=error_code,
        )


class DuplicateError(StoreError):
    """Write rejected because it collides with a stored document"""

    def __init__(
        self, detail: str = "Document already exists", error_code: str = "DUPLICATE"
    ):
        super().__init__(
            detail=detail, error_code=error_code, status_code=status.HTTP_409_CONFLICT
        )


class SideEffectError(Exception):
    """Raised by broadcast, audit and alert backends"""


async def handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    """Convert ValueError to consistent API response"""
    logger.warning(f"ValueError at {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": str(exc),
            "error_code": "VALIDATION_ERROR",
            "path": str(request.url.path),
        },
    )


async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors"""
    content = {
        "detail": exc.detail,
        "error_code": exc.error_code,
        "path": str(request.url.path),
    }
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} at {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app"""
    app.add_exception_handler(ValueError, handle_value_error)
    app.add_exception_handler(APIError, handle_api_error)
