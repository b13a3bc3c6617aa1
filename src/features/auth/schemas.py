"""Authentication schemas (DTOs)."""

from datetime import datetime

from pydantic import EmailStr, Field, field_validator

from src.shared.schemas import CamelModel
from src.shared.validators.otp import validate_otp_format
from src.shared.validators.password import validate_password_strength


# Request schemas
class RegisterRequest(CamelModel):
    """Self-registration.

    Note: Uses email-validator library via Pydantic's EmailStr for RFC 5322 compliant email validation.
    """

    email: EmailStr = Field(..., description="Email address (validated via email-validator)")
    password: str = Field(..., description="Password (min 8 chars, upper, lower, digit and special character)")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, value: str) -> str:
        """Validate password strength using shared validator."""
        return validate_password_strength(value)


class VerifyEmailRequest(CamelModel):
    email: EmailStr
    code: str

    @field_validator("code")
    @classmethod
    def check_code_format(cls, value: str) -> str:
        return validate_otp_format(value)


class ResendVerificationEmailRequest(CamelModel):
    email: EmailStr


class LoginRequest(CamelModel):
    """Login with email and password.

    Only presence is checked here; the password policy is not applied so that
    accounts created under an older policy can still sign in.
    """

    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshTokenRequest(CamelModel):
    """Refresh token request. Browsers send the token as a cookie instead."""

    refresh_token: str | None = None


class LogoutRequest(CamelModel):
    refresh_token: str | None = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def check_password_strength(cls, value: str) -> str:
        """Validate password strength using shared validator."""
        return validate_password_strength(value)


class ForgotPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordRequest(CamelModel):
    email: EmailStr
    code: str
    new_password: str

    @field_validator("code")
    @classmethod
    def check_code_format(cls, value: str) -> str:
        return validate_otp_format(value)

    @field_validator("new_password")
    @classmethod
    def check_password_strength(cls, value: str) -> str:
        """Validate password strength using shared validator."""
        return validate_password_strength(value)


# Response schemas
class UserDto(CamelModel):
    """Public projection of an account. ``id`` is the external identifier."""

    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    avatar_url: str | None = None
    roles: list[str] = []
    email_confirmed: bool


class AuthenticationDto(CamelModel):
    """Token pair plus the signed-in user."""

    access_token: str
    refresh_token: str
    expires_at: datetime
    user: UserDto


class WebAuthenticationDto(CamelModel):
    """Browser variant: the refresh token travels in a cookie."""

    access_token: str
    expires_at: datetime
    user: UserDto


class RefreshTokenDto(CamelModel):
    access_token: str
    refresh_token: str
    expires_at: datetime


class WebRefreshTokenDto(CamelModel):
    access_token: str
    expires_at: datetime
