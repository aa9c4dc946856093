"""
Scan Engine Exception Handling

Single ScanEngineException base class for all engine errors with FastAPI integration.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ScanEngineException(Exception):
    """
    Unified exception for all scan engine error scenarios.

    Provides consistent error response format across the API and the
    WebSocket bridge.

    Usage:
        raise ScanEngineException("Profile not found", "PROFILE_NOT_FOUND", 404)

    Error Codes:
        Profiles:
            - INVALID_PROFILE (422)
            - PROFILE_NOT_FOUND (404)

        Expressions:
            - EVALUATION_ERROR (422)

        Sessions:
            - INVALID_MESSAGE (400)
            - INTERNAL_ERROR (500)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize engine exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "INVALID_PROFILE")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


class EvaluationError(ScanEngineException):
    """Raised when an expression cannot be parsed or evaluated."""

    def __init__(self, message: str, expression: Optional[str] = None):
        details = {"expression": expression} if expression is not None else None
        super().__init__(message, "EVALUATION_ERROR", 422, details)
        self.expression = expression


class ProfileError(ScanEngineException):
    """Raised when an output profile violates its structural invariants."""

    def __init__(self, message: str, index: Optional[int] = None):
        details = {"index": index} if index is not None else None
        super().__init__(message, "INVALID_PROFILE", 422, details)
        self.index = index


async def engine_exception_handler(request: Request, exc: ScanEngineException) -> JSONResponse:
    """
    FastAPI exception handler for ScanEngineException.

    Converts ScanEngineException to consistent JSON error response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(ScanEngineException, engine_exception_handler)


# ============================================
# CONVENIENCE FACTORY FUNCTIONS
# ============================================

def profile_not_found(index: int) -> ScanEngineException:
    """Create profile not found exception."""
    return ScanEngineException(
        "Output profile not found",
        "PROFILE_NOT_FOUND",
        404,
        {"profile_index": index}
    )


def invalid_message(reason: str) -> ScanEngineException:
    """Create invalid session message exception."""
    return ScanEngineException(
        f"Invalid message: {reason}",
        "INVALID_MESSAGE",
        400,
        {"reason": reason}
    )


def unmatched_if(index: int) -> ProfileError:
    """Create unmatched IF block exception."""
    return ProfileError(f"IF block at position {index} has no matching ENDIF", index)


def stray_endif(index: int) -> ProfileError:
    """Create stray ENDIF block exception."""
    return ProfileError(f"ENDIF block at position {index} has no opening IF", index)


def internal_error(message: str = "Internal engine error") -> ScanEngineException:
    """Create internal engine error exception."""
    return ScanEngineException(message, "INTERNAL_ERROR", 500)
