"""Authentication exceptions raised by request dependencies."""

from fastapi import HTTPException, status

from src.shared.result import ErrorCode


class AuthenticationException(HTTPException):
    """Base authentication exception."""

    error_code: ErrorCode = ErrorCode.UNAUTHORIZED

    def __init__(self, detail: str = "Authentication failed"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotAuthenticatedException(AuthenticationException):
    """Raised when no bearer token was sent."""

    def __init__(self):
        super().__init__(detail="User not authenticated.")


class InvalidTokenException(AuthenticationException):
    """Raised when an access token is invalid or expired."""

    error_code = ErrorCode.INVALID_TOKEN

    def __init__(self, detail: str = "Invalid or expired token."):
        super().__init__(detail=detail)


class StaleTokenException(InvalidTokenException):
    """Raised when the token was issued before the account's last credential change."""

    def __init__(self):
        super().__init__(detail="Token is no longer valid. Please sign in again.")


class UserInactiveException(HTTPException):
    """Raised when the account is inactive or banned."""

    error_code = ErrorCode.ACCOUNT_INACTIVE

    def __init__(self):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active.")


class MissingRefreshTokenException(HTTPException):
    """Raised when neither the cookie nor the body carries a refresh token."""

    error_code = ErrorCode.INVALID_TOKEN

    def __init__(self):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail="Refresh token is required.")
