"""
Custom exception handlers for consistent API error responses.

This module provides custom exceptions and handlers to maintain
consistent error responses across the API, even when services raise
plain domain exceptions internally.
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class APIError(HTTPException):
    """Base API error with consistent structure"""

    def __init__(
        self,
        status_code: int,
        detail: Any,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class ConflictError(APIError):
    """Resource conflict error"""

    def __init__(self, detail: Any = "Resource conflict", error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT, detail=detail, error_code=error_code
        )


class DomainError(Exception):
    """
    Base class for errors raised by service code that has no knowledge of
    HTTP. The registered handler turns them into the same response shape
    as APIError.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, error_code: str, details: Optional[Dict] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict:
        """Convert exception to dictionary for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


async def handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    """Convert service-level domain errors to consistent API response"""
    logger.info(f"{exc.error_code} at {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "error_code": exc.error_code,
            "details": exc.details,
            "path": str(request.url.path),
        },
    )


async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error_code": exc.error_code,
            "path": str(request.url.path),
        },
        headers=exc.headers,
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app"""
    app.add_exception_handler(DomainError, handle_domain_error)
    app.add_exception_handler(APIError, handle_api_error)
