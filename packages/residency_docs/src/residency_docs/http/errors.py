"""
API Error Normalization

Every failure that reaches application code is an ApiError: HTTP failures
carry their status, transport and unexpected failures carry status 0.
"""

from dataclasses import dataclass
from typing import Any

NETWORK_ERROR_MESSAGE = "ネットワークエラーが発生しました。再度お試しください。"
UNEXPECTED_ERROR_MESSAGE = "予期しないエラーが発生しました。"


@dataclass
class ValidationError:
    """A field-level validation error returned by the backend."""

    field: str
    message: str
    code: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationError":
        return cls(
            field=str(data.get("field", "")),
            message=str(data.get("message", "")),
            code=data.get("code"),
        )


class ApiError(Exception):
    """Normalized error from the backend or the transport."""

    def __init__(
        self,
        message: str,
        status: int = 0,
        code: str | None = None,
        errors: list[ValidationError] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.errors = errors or []
        self.details = details or {}

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, code={self.code!r}, message={self.message!r})"

    @property
    def is_network_error(self) -> bool:
        return self.status == 0

    @classmethod
    def from_payload(cls, status: int, payload: Any, fallback_message: str) -> "ApiError":
        """Build an error from a decoded error body (which may be anything)."""
        if not isinstance(payload, dict):
            return cls(message=fallback_message, status=status)

        raw_errors = payload.get("errors")
        errors = (
            [ValidationError.from_dict(item) for item in raw_errors if isinstance(item, dict)]
            if isinstance(raw_errors, list)
            else []
        )

        details = payload.get("details")
        if details is not None and not isinstance(details, dict):
            # PostgREST sends details (and hint) as plain strings
            details = {"details": details}
        if payload.get("hint"):
            details = {**(details or {}), "hint": payload["hint"]}

        return cls(
            message=payload.get("message") or payload.get("error_description") or fallback_message,
            status=status,
            code=payload.get("code") or payload.get("error"),
            errors=errors,
            details=details,
        )


def is_api_error(error: Any) -> bool:
    return isinstance(error, ApiError)


def to_api_error(error: Any, fallback_message: str = NETWORK_ERROR_MESSAGE) -> ApiError:
    """
    Coerce any raised value into an ApiError.

    ApiErrors pass through unchanged. Mappings that look like an error shape
    (status + message) keep their fields. Everything else becomes status 0.
    """
    if isinstance(error, ApiError):
        return error

    if isinstance(error, dict):
        status = error.get("status")
        message = error.get("message")
        if isinstance(status, int) and isinstance(message, str):
            return ApiError.from_payload(status, error, message)

    if isinstance(error, BaseException):
        api_error = ApiError(message=str(error) or fallback_message, status=0)
        api_error.__cause__ = error
        return api_error

    return ApiError(message=fallback_message, status=0)


def extract_error_message(error: Any) -> str:
    if isinstance(error, ApiError):
        return error.message
    if isinstance(error, BaseException):
        return str(error) or UNEXPECTED_ERROR_MESSAGE
    if isinstance(error, str):
        return error
    return UNEXPECTED_ERROR_MESSAGE


def format_validation_errors(errors: list[ValidationError] | None) -> str | None:
    """Render field errors one per line, or None when there are none."""
    if not errors:
        return None
    return "\n".join(f"{error.field}: {error.message}" for error in errors)
