"""Typed workflow outcomes and the error code taxonomy."""

from dataclasses import dataclass, field
from enum import StrEnum


class ErrorCode(StrEnum):
    """Machine-readable error codes returned to clients."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    ACCOUNT_INACTIVE = "ACCOUNT_INACTIVE"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    EMAIL_ALREADY_VERIFIED = "EMAIL_ALREADY_VERIFIED"
    INVALID_OTP_CODE = "INVALID_OTP_CODE"
    OTP_RATE_LIMIT_EXCEEDED = "OTP_RATE_LIMIT_EXCEEDED"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    REFRESH_TOKEN_EXPIRED = "REFRESH_TOKEN_EXPIRED"
    REGISTRATION_FAILED = "REGISTRATION_FAILED"
    PASSWORD_CHANGE_FAILED = "PASSWORD_CHANGE_FAILED"
    PASSWORD_RESET_FAILED = "PASSWORD_RESET_FAILED"
    EMAIL_VERIFICATION_FAILED = "EMAIL_VERIFICATION_FAILED"
    EMAIL_SEND_FAILED = "EMAIL_SEND_FAILED"


@dataclass(frozen=True)
class Result[T]:
    """Outcome of a workflow.

    A failed result carries one or more human-readable messages and exactly
    one error code; a successful one optionally carries data.
    """

    succeeded: bool
    data: T | None = None
    errors: list[str] = field(default_factory=list)
    error_code: ErrorCode | None = None

    @classmethod
    def success(cls, data: T | None = None) -> "Result[T]":
        return cls(succeeded=True, data=data)

    @classmethod
    def failure(cls, errors: str | list[str], error_code: ErrorCode) -> "Result[T]":
        messages = [errors] if isinstance(errors, str) else list(errors)
        return cls(succeeded=False, errors=messages, error_code=error_code)
