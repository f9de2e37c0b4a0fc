"""
Application error taxonomy.

Every error is an HTTPException so services can raise them the same way they
raise plain HTTP errors; main.py renders them as
{"success": false, "error": ..., "code": ...}.
"""
from typing import Any, Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "Internal"
    message = "Internal server error"

    def __init__(self, detail: Optional[str] = None, headers: Optional[dict] = None) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.message, headers=headers)


class ConfigurationError(AppError):
    code = "Internal"
    message = "Server is misconfigured"


# ==================== 400 ====================
class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "ValidationFailed"
    message = "Validation failed"

    def __init__(self, detail: Optional[str] = None, errors: Optional[list[dict[str, Any]]] = None) -> None:
        self.errors = errors or []
        if detail is None and self.errors:
            detail = "; ".join(f"{err['field']}: {err['message']}" for err in self.errors)
        super().__init__(detail)


# ==================== 401 ====================
class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "Unauthenticated"
    message = "Not authenticated"

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class InvalidCredentials(Unauthenticated):
    code = "InvalidCredentials"
    message = "Invalid credentials"


class InvalidToken(Unauthenticated):
    code = "InvalidToken"
    message = "Session expired or invalid token"


class PrincipalGone(Unauthenticated):
    code = "PrincipalGone"
    message = "User no longer exists"


# ==================== 403 ====================
class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "Forbidden"
    message = "Operation not permitted"


class PendingApproval(Forbidden):
    code = "PendingApproval"
    message = "Account pending review. Please wait for an administrator to approve your registration."


class NotAuthorizedForReport(Forbidden):
    code = "NotAuthorizedForReport"
    message = "This report is not assigned to your fleet unit"


# ==================== 404 ====================
class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NotFound"
    message = "Resource not found"


class ReportNotFound(NotFound):
    code = "ReportNotFound"
    message = "Report not found"


class UnitNotFound(NotFound):
    code = "UnitNotFound"
    message = "Truck not found"


class UserNotFound(NotFound):
    code = "UserNotFound"
    message = "User not found"


# ==================== 409 ====================
class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "Conflict"
    message = "Conflicting state"


class DuplicateIdentity(Conflict):
    code = "DuplicateIdentity"
    message = "User with this email or username already exists"


class DuplicatePlate(Conflict):
    code = "DuplicatePlate"
    message = "License plate already registered"


class DriverAlreadyHasUnit(Conflict):
    code = "DriverAlreadyHasUnit"
    message = "This driver already has a registered fleet unit"


class UnitBusy(Conflict):
    code = "UnitBusy"
    message = "Truck is already servicing another report"


class UnitNotApproved(Conflict):
    code = "UnitNotApproved"
    message = "Truck has not been approved yet"


class ReportAlreadyAssigned(Conflict):
    code = "ReportAlreadyAssigned"
    message = "Report is not pending; unassign it first"


class InvalidTransition(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "InvalidTransition"
    message = "Illegal status transition"


class NotAssigned(InvalidTransition):
    code = "NotAssigned"
    message = "Report has no truck assigned"


_LOCATION_ROOTS = {"body", "query", "path", "header", "cookie"}


def field_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Flatten pydantic error dicts to [{field, message}] for API responses."""
    flattened = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in _LOCATION_ROOTS:
            loc = loc[1:]
        flattened.append({"field": ".".join(loc) or "request", "message": err.get("msg", "Invalid value")})
    return flattened
