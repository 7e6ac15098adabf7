from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str, field: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.field = field


class ValidationFailedError(ApiError):
    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(status_code=422, code="VALIDATION_ERROR", message=message, field=field)


class InvalidRangeError(ApiError):
    def __init__(self, message: str, *, field: str | None = "end_date"):
        super().__init__(status_code=422, code="INVALID_RANGE", message=message, field=field)


class NotFoundError(ApiError):
    def __init__(self, message: str):
        super().__init__(status_code=404, code="NOT_FOUND", message=message)


class SummaryNotGeneratedError(ApiError):
    """No summary exists yet for the requested period; an admin has to generate it."""

    def __init__(self, *, employee_id: int, month: int, year: int):
        super().__init__(
            status_code=404,
            code="SUMMARY_NOT_GENERATED",
            message=f"Monthly summary for {year}-{month:02d} has not been generated yet.",
        )
        self.employee_id = employee_id
        self.month = month
        self.year = year


class StateConflictError(ApiError):
    """Someone else already acted on the record, or the record is in the wrong state."""

    def __init__(self, message: str, *, code: str = "STATE_CONFLICT"):
        super().__init__(status_code=409, code=code, message=message)


class AlreadySignedError(StateConflictError):
    def __init__(self, message: str = "Monthly summary is already signed by staff."):
        super().__init__(message, code="ALREADY_SIGNED")


class ImmutableSummaryError(StateConflictError):
    def __init__(self, status: str):
        super().__init__(
            f"Monthly summary in status {status} cannot be regenerated.",
            code="SUMMARY_IMMUTABLE",
        )
        self.status = status


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    field: str | None = None,
) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "field": field,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
