"""Exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .clock import utc_now

logger = logging.getLogger(__name__)

PROBLEM_BASE_URI = "https://fleet-booking.example.com/problems"


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        code: Optional[str] = None,
        retryable: Optional[bool] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            code: Stable application error code clients can switch on
            retryable: Whether repeating the request may succeed
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.title = title
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.code = code
        self.retryable = retryable
        self.extensions = extensions or {}

        self.problem_details: Dict[str, Any] = {
            "type": self.type_uri,
            "title": self.title,
            "status": status_code,
        }
        if detail:
            self.problem_details["detail"] = detail
        if instance:
            self.problem_details["instance"] = instance
        if code:
            self.problem_details["code"] = code
        if retryable is not None:
            self.problem_details["retryable"] = retryable
        self.problem_details.update(self.extensions)

        super().__init__(status_code=status_code, detail=detail, headers=headers)

    @property
    def reason(self) -> str:
        """Human-readable reason, falling back to the title."""
        return self.detail or self.title


class ValidationError(ProblemDetailsException):
    """Exception for request validation errors."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        violations: Optional[list[Dict[str, str]]] = None,
        code: str = "VALIDATION_ERROR",
        instance: Optional[str] = None,
    ):
        extensions = {}
        if violations:
            extensions["violations"] = violations

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/validation-error",
            instance=instance,
            code=code,
            retryable=False,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authorization credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authorization Required",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/authentication-required",
            instance=instance,
            code="UNAUTHENTICATED",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for authorization errors."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to perform this operation",
        required_roles: Optional[list[str]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if required_roles:
            extensions["required_roles"] = required_roles

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/access-forbidden",
            instance=instance,
            code="FORBIDDEN",
            retryable=False,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        code: str = "NOT_FOUND",
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {"resource_type": resource_type}
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/resource-not-found",
            instance=instance,
            code=code,
            retryable=False,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        title: str = "Resource Conflict",
        type_uri: Optional[str] = None,
        code: str = "CONFLICT",
        retryable: bool = False,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title=title,
            detail=detail,
            type_uri=type_uri or f"{PROBLEM_BASE_URI}/resource-conflict",
            instance=instance,
            code=code,
            retryable=retryable,
            extensions=extensions,
        )


class InternalServerError(ProblemDetailsException):
    """Exception for internal server errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=500,
            title="Internal Server Error",
            detail=detail,
            type_uri=f"{PROBLEM_BASE_URI}/internal-server-error",
            instance=instance,
            code="INTERNAL",
            extensions={
                "error_id": error_id or str(uuid.uuid4()),
                "timestamp": utc_now().isoformat() + "Z",
            },
        )


# Booking lifecycle exceptions

class InvalidIntervalError(ValidationError):
    """Start of a booking window is not strictly before its end."""

    def __init__(self, start_date: datetime, end_date: datetime):
        super().__init__(
            detail=f"Start date {start_date.isoformat()} must be before end date {end_date.isoformat()}",
            violations=[{"path": "start_date", "message": "must be before end_date"}],
            code="INVALID_INTERVAL",
        )


class PastStartDateError(ValidationError):
    """Booking window starts before the current time."""

    def __init__(self, start_date: datetime, now: datetime):
        super().__init__(
            detail=f"Start date {start_date.isoformat()} cannot be in the past (now {now.isoformat()})",
            violations=[{"path": "start_date", "message": "cannot be in the past"}],
            code="PAST_START_DATE",
        )


class VehicleNotFoundError(NotFoundError):
    """Vehicle is unknown to the vehicle directory."""

    def __init__(self, vehicle_id: str):
        super().__init__(resource_type="vehicle", resource_id=vehicle_id, code="VEHICLE_NOT_FOUND")


class BookingNotFoundError(NotFoundError):
    """Booking does not exist."""

    def __init__(self, booking_id: str):
        super().__init__(resource_type="booking", resource_id=booking_id, code="BOOKING_NOT_FOUND")


class VehicleUnavailableError(ConflictError):
    """Vehicle cannot be booked for the requested window."""

    def __init__(
        self,
        vehicle_id: str,
        reason: str,
        conflicting_booking: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            detail=reason,
            conflicting_resource=conflicting_booking,
            title="Vehicle Unavailable",
            type_uri=f"{PROBLEM_BASE_URI}/vehicle-unavailable",
            code="VEHICLE_UNAVAILABLE",
        )
        self.vehicle_id = vehicle_id


class InvalidTransitionError(ConflictError):
    """Requested status change is not allowed from the booking's current status."""

    def __init__(self, booking_id: str, current_status: str, target_status: str):
        super().__init__(
            detail=f"Booking {booking_id} cannot move from '{current_status}' to '{target_status}'",
            title="Invalid Transition",
            type_uri=f"{PROBLEM_BASE_URI}/invalid-transition",
            code="INVALID_TRANSITION",
        )
        self.problem_details.update({
            "booking_id": booking_id,
            "current_status": current_status,
            "target_status": target_status,
        })


class InvalidBookingStateError(ConflictError):
    """Booking is not in a status that allows the requested operation."""

    def __init__(self, booking_id: str, current_status: str, operation: str):
        super().__init__(
            detail=f"Booking {booking_id} is '{current_status}' and does not allow {operation}",
            title="Invalid Booking State",
            type_uri=f"{PROBLEM_BASE_URI}/invalid-booking-state",
            code="INVALID_BOOKING_STATE",
        )
        self.problem_details.update({
            "booking_id": booking_id,
            "current_status": current_status,
        })


class ConcurrencyConflictError(ConflictError):
    """An atomic write lost a race against a concurrent writer."""

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            detail=f"Concurrent modification of {resource_type} {resource_id}",
            title="Concurrency Conflict",
            type_uri=f"{PROBLEM_BASE_URI}/concurrency-conflict",
            code="CONCURRENCY_CONFLICT",
            retryable=True,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    content = dict(exc.problem_details)
    content.setdefault("instance", request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI request validation failures as Problem Details with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "invalid value"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={
            "type": f"{PROBLEM_BASE_URI}/validation-error",
            "title": "Validation Error",
            "status": 422,
            "detail": "The request body failed validation",
            "instance": request.url.path,
            "code": "VALIDATION_ERROR",
            "retryable": False,
            "violations": violations,
        },
        media_type="application/problem+json",
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    Args:
        request: FastAPI request object
        exc: Unhandled exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    error = InternalServerError(instance=str(request.url))
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "error_id": error.problem_details["error_id"],
            "error": str(exc),
        },
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content=error.problem_details,
        media_type="application/problem+json",
    )
