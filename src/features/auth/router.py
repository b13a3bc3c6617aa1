"""Authentication router.

Browsers get the refresh token in an httpOnly cookie scoped to the auth
path and never see it in the JSON body; other clients get it in the body.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.config.settings import settings
from src.features.account.models import Account
from src.shared.rate_limit import limiter
from src.shared.schemas import ApiResponse, envelope, failure_response

from .dependencies import get_auth_service, get_current_account
from .exceptions import MissingRefreshTokenException
from .schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResendVerificationEmailRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
    WebAuthenticationDto,
    WebRefreshTokenDto,
)
from .service import AuthService, ClientInfo

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])

_NATIVE_CLIENT_MARKERS = ("flutter", "dart", "okhttp")
_BROWSER_MARKERS = ("mozilla", "chrome", "safari", "edge", "firefox")


def is_browser_client(request: Request) -> bool:
    """Guess from the User-Agent whether the caller is a web browser."""
    user_agent = request.headers.get("user-agent", "").lower()
    if any(marker in user_agent for marker in _NATIVE_CLIENT_MARKERS):
        return False
    return any(marker in user_agent for marker in _BROWSER_MARKERS)


def client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def set_refresh_cookie(response: JSONResponse, refresh_token: str) -> None:
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token,
        max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        path=settings.auth_path,
        secure=settings.refresh_cookie_secure,
        httponly=True,
        samesite="strict",
    )


def clear_refresh_cookie(response: JSONResponse) -> None:
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path=settings.auth_path,
        secure=settings.refresh_cookie_secure,
        httponly=True,
        samesite="strict",
    )


@router.post("/register")
async def register(data: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Create an account and email a verification code.

    - **email**: Email address
    - **password**: Password (minimum 8 characters with uppercase, lowercase, digit and special character)
    - **firstName** / **lastName**: Display name parts
    """
    result = await auth_service.register(data.email, data.password, data.first_name, data.last_name)
    if not result.succeeded:
        return failure_response(result)
    return envelope(ApiResponse.success(result.data))


@router.post("/verify-email")
@limiter.limit(settings.otp_endpoint_rate_limit)
async def verify_email(
    request: Request,
    data: VerifyEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Confirm the email with the 6-digit code and sign in."""
    result = await auth_service.verify_email(data.email, data.code, client_info(request))
    if not result.succeeded or result.data is None:
        return failure_response(result)

    auth = result.data
    if not is_browser_client(request):
        return envelope(ApiResponse.success(auth))

    response = envelope(ApiResponse.success(WebAuthenticationDto(**auth.model_dump(exclude={"refresh_token"}))))
    set_refresh_cookie(response, auth.refresh_token)
    return response


@router.post("/resend-verification-email")
@limiter.limit(settings.otp_endpoint_rate_limit)
async def resend_verification_email(
    request: Request,
    data: ResendVerificationEmailRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    result = await auth_service.resend_verification_email(data.email)
    if not result.succeeded:
        return failure_response(result)
    return envelope(ApiResponse.success())


@router.post("/login")
async def login(request: Request, data: LoginRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Login and get tokens.

    Returns accessToken and the user; refreshToken is in the body for
    non-browser clients and in a cookie for browsers.
    """
    result = await auth_service.login(data.email, data.password, client_info(request))
    if not result.succeeded or result.data is None:
        return failure_response(result)

    auth = result.data
    if not is_browser_client(request):
        return envelope(ApiResponse.success(auth))

    response = envelope(ApiResponse.success(WebAuthenticationDto(**auth.model_dump(exclude={"refresh_token"}))))
    set_refresh_cookie(response, auth.refresh_token)
    return response


@router.post("/refresh-token")
async def refresh_token(
    request: Request,
    data: RefreshTokenRequest | None = None,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Exchange a refresh token (cookie first, then body) for a new token pair."""
    cookie_token = request.cookies.get(settings.refresh_cookie_name)
    token = cookie_token or (data.refresh_token if data else None)
    if not token:
        raise MissingRefreshTokenException()

    result = await auth_service.refresh_token(token, client_info(request))
    if not result.succeeded or result.data is None:
        return failure_response(result)

    tokens = result.data
    if cookie_token is None:
        return envelope(ApiResponse.success(tokens))

    response = envelope(ApiResponse.success(WebRefreshTokenDto(**tokens.model_dump(exclude={"refresh_token"}))))
    set_refresh_cookie(response, tokens.refresh_token)
    return response


@router.post("/logout")
async def logout(
    request: Request,
    data: LogoutRequest | None = None,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Revoke the given refresh token. Always succeeds."""
    cookie_token = request.cookies.get(settings.refresh_cookie_name)
    token = cookie_token or (data.refresh_token if data else None)
    await auth_service.logout(token)

    response = envelope(ApiResponse.success())
    if cookie_token is not None:
        clear_refresh_cookie(response)
    return response


@router.post("/logout-all")
async def logout_all(
    current_account: Account = Depends(get_current_account),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Revoke every session of the current account."""
    result = await auth_service.logout_all(current_account.id)
    if not result.succeeded:
        return failure_response(result)

    response = envelope(ApiResponse.success())
    clear_refresh_cookie(response)
    return response


@router.post("/change-password")
async def change_password(
    data: ChangePasswordRequest,
    current_account: Account = Depends(get_current_account),
    auth_service: AuthService = Depends(get_auth_service),
):
    result = await auth_service.change_password(current_account.id, data.current_password, data.new_password)
    if not result.succeeded:
        return failure_response(result)
    return envelope(ApiResponse.success())


@router.post("/forgot-password")
@limiter.limit(settings.otp_endpoint_rate_limit)
async def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Email a password reset code. Unknown emails get the same answer."""
    result = await auth_service.forgot_password(data.email)
    if not result.succeeded:
        return failure_response(result)
    return envelope(ApiResponse.success())


@router.post("/reset-password")
@limiter.limit(settings.otp_endpoint_rate_limit)
async def reset_password(
    request: Request,
    data: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    result = await auth_service.reset_password(data.email, data.code, data.new_password)
    if not result.succeeded:
        return failure_response(result)
    return envelope(ApiResponse.success())


@router.get("/me")
async def me(
    current_account: Account = Depends(get_current_account),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Profile of the authenticated account."""
    result = await auth_service.get_current_user(current_account.id)
    if not result.succeeded:
        return failure_response(result)
    return envelope(ApiResponse.success(result.data))
