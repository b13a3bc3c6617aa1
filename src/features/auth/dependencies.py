"""Authentication dependencies for FastAPI."""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.dependencies import get_db_session
from src.features.account.models import Account
from src.features.account.service import AccountService
from src.shared.clock import Clock, get_clock
from src.shared.events import EventDispatcher, get_event_dispatcher
from src.shared.mailer import EmailSender, get_email_sender

from .exceptions import (
    InvalidTokenException,
    NotAuthenticatedException,
    StaleTokenException,
    UserInactiveException,
)
from .jwt_utils import TokenService
from .service import AuthService

security = HTTPBearer(auto_error=False)


def get_token_service(clock: Clock = Depends(get_clock)) -> TokenService:
    return TokenService(clock)


def get_auth_service(
    session: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
    token_service: TokenService = Depends(get_token_service),
    email_sender: EmailSender = Depends(get_email_sender),
    dispatcher: EventDispatcher = Depends(get_event_dispatcher),
) -> AuthService:
    return AuthService(
        session,
        clock=clock,
        token_service=token_service,
        email_sender=email_sender,
        dispatcher=dispatcher,
    )


async def get_current_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    session: AsyncSession = Depends(get_db_session),
    token_service: TokenService = Depends(get_token_service),
    clock: Clock = Depends(get_clock),
) -> Account:
    """Resolve the account behind a bearer access token.

    The token's ``stamp`` claim must match the account's current security
    stamp, so tokens issued before a password change or logout-all are
    rejected even while unexpired.

    Raises:
        NotAuthenticatedException: If no bearer token was sent
        InvalidTokenException: If the token is invalid, expired or its account is gone
        StaleTokenException: If the security stamp changed since issuance
        UserInactiveException: If the account is not active

    """
    if credentials is None:
        raise NotAuthenticatedException()

    claims = token_service.validate_access_token(credentials.credentials)
    if claims is None:
        raise InvalidTokenException()

    try:
        account_id = int(claims["uid"])
    except (TypeError, ValueError) as err:
        raise InvalidTokenException() from err

    account = await AccountService(session, clock).get_by_id(account_id)

    # uid is only trusted together with the subject it was issued for
    if account is None or account.external_id != claims["sub"]:
        raise InvalidTokenException()

    if claims.get("stamp") != account.security_stamp:
        raise StaleTokenException()

    if not account.is_active:
        raise UserInactiveException()

    return account
