"""
Custom exceptions and error handlers for Quizcraft Backend
Provides consistent error responses and logging
"""

import logging
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizcraft.core.config import settings

logger = logging.getLogger(__name__)


class QuizcraftException(Exception):
    """Base exception for Quizcraft application"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)


class RepositoryError(QuizcraftException):
    """Question/config/result store could not be reached or failed"""

    def __init__(
        self, message: str = "Repository operation failed", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="REPOSITORY_ERROR",
            details=details,
        )


class NotFoundException(QuizcraftException):
    """Resource not found exception"""

    def __init__(self, resource: str = "Resource", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details=details,
        )


class QuestionInUseError(QuizcraftException):
    """Hard delete refused because stored results reference the question"""

    def __init__(self, question_id: str, result_count: int):
        super().__init__(
            message=f"Question {question_id} is referenced by {result_count} stored result(s)",
            status_code=status.HTTP_409_CONFLICT,
            error_code="QUESTION_IN_USE",
            details={"question_id": question_id, "result_count": result_count},
        )


class AssemblyInventoryError(QuizcraftException):
    """A quiz part cannot supply the requested number of distinct questions"""

    def __init__(self, part_id: str, part_name: str, requested: int, available: int):
        self.part_id = part_id
        self.part_name = part_name
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            message=(
                f'Part "{part_name}" requires {requested} questions but only '
                f"{available} are available (short by {self.shortfall})"
            ),
            status_code=status.HTTP_409_CONFLICT,
            error_code="ASSEMBLY_INVENTORY_ERROR",
            details={
                "part_id": part_id,
                "part_name": part_name,
                "requested": requested,
                "available": available,
                "shortfall": self.shortfall,
            },
        )


class QuizGenerationError(QuizcraftException):
    """Quiz could not be generated because the repository failed"""

    def __init__(
        self, message: str = "Quiz generation failed", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="GENERATION_FAILED",
            details=details,
        )


class ConfigValidationError(QuizcraftException):
    """Quiz configuration cannot be saved as it stands"""

    def __init__(self, violations: List[Dict[str, Any]]):
        self.violations = violations
        summary = "; ".join(v["message"] for v in violations)
        super().__init__(
            message=f"Quiz configuration is invalid: {summary}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="CONFIG_VALIDATION_ERROR",
            details={"violations": violations},
        )


class GradingTransportError(QuizcraftException):
    """Answers could not be graded because the repository failed"""

    def __init__(
        self, message: str = "Grading failed", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="GRADING_FAILED",
            details=details,
        )


class InvalidSubmissionError(QuizcraftException):
    """Handed-in quiz does not match the configuration it claims to come from"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="INVALID_SUBMISSION",
            details=details,
        )


class InvalidAnswerError(QuizcraftException):
    """Answer cannot be recorded against the question it targets"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="INVALID_ANSWER",
            details=details,
        )


class ManualScoreRangeError(QuizcraftException):
    """Manual override outside [0, max_score]"""

    def __init__(self, index: int, score: float, max_score: float):
        super().__init__(
            message=f"Score must be between 0 and {max_score}, got {score}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="MANUAL_SCORE_RANGE_ERROR",
            details={"attempt_index": index, "score": score, "max_score": max_score},
        )


class SessionStateError(QuizcraftException):
    """Operation not allowed in the quiz session's current state"""

    def __init__(self, operation: str, state: str):
        super().__init__(
            message=f"Cannot {operation} while session is {state}",
            status_code=status.HTTP_409_CONFLICT,
            error_code="SESSION_STATE_ERROR",
            details={"operation": operation, "state": state},
        )


def create_error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """
    Create standardized error response

    Args:
        request: FastAPI request object
        status_code: HTTP status code
        error_code: Application error code
        message: Error message
        details: Additional error details

    Returns:
        JSON response with error information
    """
    error_response = {
        "error": {
            "code": error_code,
            "message": message,
            "details": details or {},
            "path": str(request.url),
            "method": request.method,
        }
    }

    # Add request ID if available
    if hasattr(request.state, "request_id"):
        error_response["error"]["request_id"] = request.state.request_id

    return JSONResponse(status_code=status_code, content=error_response)


async def quizcraft_exception_handler(request: Request, exc: QuizcraftException) -> JSONResponse:
    """Handle Quizcraft custom exceptions"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Quizcraft exception: {exc.message}",
        extra={
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": str(request.url),
        },
    )

    # Send to Sentry if configured
    if settings.SENTRY_DSN and exc.status_code >= 500:
        sentry_sdk.capture_exception(exc)

    return create_error_response(
        request=request,
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        details=exc.details,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions"""
    logger.warning(
        f"HTTP exception: {exc.detail}",
        extra={"status_code": exc.status_code, "path": str(request.url)},
    )

    return create_error_response(
        request=request,
        status_code=exc.status_code,
        error_code="HTTP_ERROR",
        message=str(exc.detail),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors

    Args:
        request: FastAPI request object
        exc: Validation error

    Returns:
        JSON error response with validation details
    """
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
        )

    logger.warning("Validation error", extra={"errors": errors, "path": str(request.url)})

    return create_error_response(
        request=request,
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        error_code="VALIDATION_ERROR",
        message="Request validation failed",
        details={"errors": errors},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions"""
    logger.error(
        f"Unexpected error: {str(exc)}",
        extra={"exception_type": type(exc).__name__, "path": str(request.url)},
        exc_info=True,
    )

    if settings.SENTRY_DSN:
        sentry_sdk.capture_exception(exc)

    # Don't expose internal errors in production
    if settings.is_production():
        message = "An unexpected error occurred"
    else:
        message = str(exc)

    return create_error_response(
        request=request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code="INTERNAL_ERROR",
        message=message,
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI app

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(QuizcraftException, quizcraft_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Catch-all handler for unexpected exceptions
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
