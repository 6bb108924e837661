"""Application exception types."""

from typing import Any

from app.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(code=code, message=message, details=details)
        super().__init__(message)


def not_found() -> ApiError:
    """No-leak 404 shared by missing and foreign resources."""
    return ApiError(status_code=404, code="RESOURCE_NOT_FOUND", message="Resource not found")


__all__ = ["ApiError", "not_found"]
