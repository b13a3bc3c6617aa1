"""Authentication service layer.

Every workflow returns a ``Result``. Modelled failures (bad credentials,
lockout, invalid codes, revoked tokens, ...) are never raised to the caller.
State changes are committed by the workflow itself; post-commit hooks run
only after the commit succeeded.
"""

import logging
import math
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.config.logging_config import redact_email
from src.features.account.exceptions import AccountOperationError
from src.features.account.models import Account
from src.features.account.service import AccountService
from src.shared.clock import Clock, system_clock
from src.shared.events import (
    AccountRegistered,
    AuthEvent,
    EmailVerified,
    EventDispatcher,
    PasswordChanged,
    PasswordReset,
    SessionsRevoked,
    default_dispatcher,
)
from src.shared.external_id import EntityPrefix, generate_external_id
from src.shared.mailer import EmailDeliveryError, EmailSender, LoggingEmailSender
from src.shared.result import ErrorCode, Result

from .jwt_utils import TokenService
from .models import OtpPurpose
from .otp_service import OtpService
from .refresh_tokens import RefreshTokenRepository
from .schemas import AuthenticationDto, RefreshTokenDto, UserDto

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."
NOT_AUTHENTICATED_MESSAGE = "User not authenticated."
USER_NOT_FOUND_MESSAGE = "User not found."
EMAIL_ALREADY_VERIFIED_MESSAGE = "Email already verified."
INVALID_OTP_MESSAGE = "Invalid or expired verification code."
OTP_RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


@dataclass(frozen=True)
class ClientInfo:
    """Where a request came from, recorded on issued refresh tokens."""

    ip_address: str | None = None
    user_agent: str | None = None


def to_user_dto(account: Account) -> UserDto:
    return UserDto(
        id=account.external_id,
        email=account.email,
        first_name=account.first_name,
        last_name=account.last_name,
        full_name=account.full_name,
        avatar_url=account.avatar_url,
        roles=list(account.roles),
        email_confirmed=account.email_confirmed,
    )


class AuthService:
    """Authentication workflows."""

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = system_clock,
        token_service: TokenService | None = None,
        email_sender: EmailSender | None = None,
        dispatcher: EventDispatcher | None = None,
    ):
        self._session = session
        self._clock = clock
        self.tokens = token_service or TokenService(clock)
        self.email_sender = email_sender or LoggingEmailSender()
        self.dispatcher = dispatcher or default_dispatcher
        self.accounts = AccountService(session, clock)
        self.otps = OtpService(session, clock)
        self.refresh_tokens = RefreshTokenRepository(session, clock)

    async def _commit(self, *events: AuthEvent) -> None:
        """Persist the unit of work, then hand its events to the post-commit hooks."""
        await self._session.commit()
        await self.dispatcher.dispatch(events)

    async def _issue_token_pair(self, account: Account, client: ClientInfo | None) -> tuple[str, str]:
        access_token = self.tokens.issue_access_token(
            account_id=account.id,
            external_id=account.external_id,
            email=account.email,
            full_name=account.full_name,
            roles=list(account.roles),
            security_stamp=account.security_stamp,
        )
        refresh_token = self.tokens.issue_refresh_token()
        client = client or ClientInfo()
        await self.refresh_tokens.create(
            account.id,
            refresh_token,
            self.tokens.refresh_token_expiry(),
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        return access_token, refresh_token

    def _locked_failure(self, account: Account) -> Result[AuthenticationDto]:
        lockout_end = self.accounts.get_lockout_end(account)
        remaining = 0
        if lockout_end is not None:
            remaining = math.ceil((lockout_end - self._clock.now()).total_seconds() / 60)

        if remaining > 0:
            message = (
                "Account is locked due to too many failed login attempts. "
                f"Please try again in {remaining} minute(s)."
            )
        else:
            message = "Account is locked due to too many failed login attempts. Please try again later."
        return Result.failure(message, ErrorCode.ACCOUNT_LOCKED)

    # Registration and verification

    async def register(self, email: str, password: str, first_name: str, last_name: str) -> Result[UserDto]:
        """Create an unconfirmed account and send it a verification code.

        Delivery failures are logged and swallowed; the user can ask for a resend.
        """
        external_id = generate_external_id(EntityPrefix.ACCOUNT)
        try:
            account = await self.accounts.create_account(external_id, email, password, first_name, last_name)
        except AccountOperationError as err:
            logger.warning(f"Registration rejected for {redact_email(email)}: {err}")
            return Result.failure(err.errors, ErrorCode.REGISTRATION_FAILED)

        code = await self.otps.create(account.id, OtpPurpose.EMAIL_VERIFICATION)
        await self._commit(AccountRegistered(account.external_id, self._clock.now()))
        logger.info(f"Account registered: {account.external_id}")

        try:
            await self.email_sender.send_email_verification(account.email, account.first_name, code)
        except EmailDeliveryError:
            logger.exception(f"Verification email for {account.external_id} could not be sent")

        return Result.success(to_user_dto(account))

    async def verify_email(
        self, email: str, code: str, client: ClientInfo | None = None
    ) -> Result[AuthenticationDto]:
        """Confirm the email with a verification code and sign the user in."""
        account = await self.accounts.get_by_email(email)
        if account is None:
            return Result.failure(USER_NOT_FOUND_MESSAGE, ErrorCode.NOT_FOUND)

        if account.email_confirmed:
            return Result.failure(EMAIL_ALREADY_VERIFIED_MESSAGE, ErrorCode.EMAIL_ALREADY_VERIFIED)

        if not await self.otps.validate(account.id, code, OtpPurpose.EMAIL_VERIFICATION):
            logger.warning(f"Invalid verification code for account {account.external_id}")
            return Result.failure(INVALID_OTP_MESSAGE, ErrorCode.INVALID_OTP_CODE)

        if not await self.accounts.confirm_email(account):
            # Leaves the code unused
            await self._session.rollback()
            return Result.failure("Failed to verify email.", ErrorCode.EMAIL_VERIFICATION_FAILED)

        access_token, refresh_token = await self._issue_token_pair(account, client)
        payload = AuthenticationDto(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=self.tokens.access_token_expiry(),
            user=to_user_dto(account),
        )
        await self._commit(EmailVerified(account.external_id, self._clock.now()))
        logger.info(f"Email verified for account {account.external_id}")

        try:
            await self.email_sender.send_welcome(account.email, account.first_name)
        except EmailDeliveryError:
            logger.exception(f"Welcome email for {account.external_id} could not be sent")

        return Result.success(payload)

    async def resend_verification_email(self, email: str) -> Result[None]:
        account = await self.accounts.get_by_email(email)
        if account is None:
            return Result.failure(USER_NOT_FOUND_MESSAGE, ErrorCode.NOT_FOUND)

        if account.email_confirmed:
            return Result.failure(EMAIL_ALREADY_VERIFIED_MESSAGE, ErrorCode.EMAIL_ALREADY_VERIFIED)

        code = await self.otps.issue(account.id, OtpPurpose.EMAIL_VERIFICATION)
        await self._commit()
        if code is None:
            logger.warning(f"Verification code rate limit hit for account {account.external_id}")
            return Result.failure(OTP_RATE_LIMIT_MESSAGE, ErrorCode.OTP_RATE_LIMIT_EXCEEDED)

        try:
            await self.email_sender.send_email_verification(account.email, account.first_name, code)
        except EmailDeliveryError:
            logger.exception(f"Verification email for {account.external_id} could not be sent")
            return Result.failure("Failed to send verification email.", ErrorCode.EMAIL_SEND_FAILED)

        return Result.success()

    # Sessions

    async def login(self, email: str, password: str, client: ClientInfo | None = None) -> Result[AuthenticationDto]:
        """Check credentials under the lockout policy and issue a token pair.

        An unknown email and a wrong password produce the same failure.
        """
        account = await self.accounts.get_by_email(email)
        if account is None:
            logger.warning(f"Login failed for unknown email {redact_email(email)}")
            return Result.failure(INVALID_CREDENTIALS_MESSAGE, ErrorCode.INVALID_CREDENTIALS)

        if not account.email_confirmed:
            return Result.failure("Email not verified. Please verify your email first.", ErrorCode.EMAIL_NOT_VERIFIED)

        if self.accounts.is_locked_out(account):
            logger.warning(f"Login attempt for locked account {account.external_id}")
            return self._locked_failure(account)

        if not self.accounts.check_password(account, password):
            locked = await self.accounts.record_failed_attempt(account)
            await self._commit()
            logger.warning(f"Failed password for account {account.external_id}")
            if locked:
                return Result.failure(
                    "Account locked due to too many failed login attempts.", ErrorCode.ACCOUNT_LOCKED
                )
            return Result.failure(INVALID_CREDENTIALS_MESSAGE, ErrorCode.INVALID_CREDENTIALS)

        await self.accounts.reset_failed_attempts(account)

        if not account.is_active:
            await self._commit()
            logger.warning(f"Login refused for {account.status} account {account.external_id}")
            return Result.failure("Account is not active.", ErrorCode.ACCOUNT_INACTIVE)

        await self.accounts.record_login(account)
        access_token, refresh_token = await self._issue_token_pair(account, client)
        payload = AuthenticationDto(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=self.tokens.access_token_expiry(),
            user=to_user_dto(account),
        )
        await self._commit()
        logger.info(f"Account logged in: {account.external_id}")
        return Result.success(payload)

    async def refresh_token(self, token: str, client: ClientInfo | None = None) -> Result[RefreshTokenDto]:
        """Rotate a refresh token.

        The presented token is revoked with a conditional update before its
        successor is stored; both land in the same commit. A revoked token is
        never exchanged again.
        """
        record = await self.refresh_tokens.get_by_token(token)
        if record is None:
            return Result.failure("Invalid refresh token.", ErrorCode.INVALID_REFRESH_TOKEN)

        if not record.is_active(self._clock.now()):
            if record.is_revoked:
                logger.warning(f"Revoked refresh token presented for account id {record.account_id}")
            return Result.failure("Refresh token is no longer valid.", ErrorCode.REFRESH_TOKEN_EXPIRED)

        account = await self.accounts.get_by_id(record.account_id)
        if account is None:
            return Result.failure(USER_NOT_FOUND_MESSAGE, ErrorCode.NOT_FOUND)

        if not account.is_active:
            return Result.failure("Account is not active.", ErrorCode.ACCOUNT_INACTIVE)

        new_refresh_token = self.tokens.issue_refresh_token()
        if not await self.refresh_tokens.revoke(token, replaced_by=new_refresh_token):
            # Another request rotated it first
            logger.warning(f"Concurrent rotation of a refresh token for account {account.external_id}")
            await self._session.rollback()
            return Result.failure("Refresh token is no longer valid.", ErrorCode.REFRESH_TOKEN_EXPIRED)

        client = client or ClientInfo()
        await self.refresh_tokens.create(
            account.id,
            new_refresh_token,
            self.tokens.refresh_token_expiry(),
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        access_token = self.tokens.issue_access_token(
            account_id=account.id,
            external_id=account.external_id,
            email=account.email,
            full_name=account.full_name,
            roles=list(account.roles),
            security_stamp=account.security_stamp,
        )
        payload = RefreshTokenDto(
            access_token=access_token,
            refresh_token=new_refresh_token,
            expires_at=self.tokens.access_token_expiry(),
        )
        await self._commit()
        logger.info(f"Refresh token rotated for account {account.external_id}")
        return Result.success(payload)

    async def logout(self, token: str | None) -> Result[None]:
        """Revoke one refresh token. Unknown or missing tokens are not an error."""
        if token:
            await self.refresh_tokens.revoke(token)
            await self._commit()
        return Result.success()

    async def logout_all(self, account_id: int | None) -> Result[None]:
        """Revoke every session of the caller and invalidate their access tokens."""
        if account_id is None:
            return Result.failure(NOT_AUTHENTICATED_MESSAGE, ErrorCode.UNAUTHORIZED)

        account = await self.accounts.get_by_id(account_id)
        if account is None:
            return Result.failure(NOT_AUTHENTICATED_MESSAGE, ErrorCode.UNAUTHORIZED)

        revoked = await self.refresh_tokens.revoke_all_for_account(account.id)
        await self.accounts.update_security_stamp(account)
        await self._commit(SessionsRevoked(account.external_id, self._clock.now()))
        logger.info(f"All sessions revoked for account {account.external_id} ({revoked} refresh tokens)")
        return Result.success()

    # Passwords

    async def change_password(
        self, account_id: int | None, current_password: str, new_password: str
    ) -> Result[None]:
        if account_id is None:
            return Result.failure(NOT_AUTHENTICATED_MESSAGE, ErrorCode.UNAUTHORIZED)

        account = await self.accounts.get_by_id(account_id)
        if account is None:
            return Result.failure(NOT_AUTHENTICATED_MESSAGE, ErrorCode.UNAUTHORIZED)

        try:
            await self.accounts.change_password(account, current_password, new_password)
        except AccountOperationError as err:
            logger.warning(f"Password change rejected for account {account.external_id}")
            return Result.failure(err.errors, ErrorCode.PASSWORD_CHANGE_FAILED)

        await self.accounts.update_security_stamp(account)
        await self._commit(PasswordChanged(account.external_id, self._clock.now()))
        return Result.success()

    async def forgot_password(self, email: str) -> Result[None]:
        """Send a password reset code.

        Unknown emails succeed silently. Unlike registration, a delivery
        failure fails the request.
        """
        account = await self.accounts.get_by_email(email)
        if account is None:
            logger.info(f"Password reset requested for unknown email {redact_email(email)}")
            return Result.success()

        code = await self.otps.issue(account.id, OtpPurpose.PASSWORD_RESET)
        await self._commit()
        if code is None:
            logger.warning(f"Password reset rate limit hit for account {account.external_id}")
            return Result.failure(OTP_RATE_LIMIT_MESSAGE, ErrorCode.OTP_RATE_LIMIT_EXCEEDED)

        try:
            await self.email_sender.send_password_reset(account.email, account.first_name, code)
        except EmailDeliveryError:
            logger.exception(f"Password reset email for {account.external_id} could not be sent")
            return Result.failure("Failed to send password reset email.", ErrorCode.EMAIL_SEND_FAILED)

        return Result.success()

    async def reset_password(self, email: str, code: str, new_password: str) -> Result[None]:
        """Set a new password with a reset code and sign out everywhere."""
        account = await self.accounts.get_by_email(email)
        if account is None:
            return Result.failure("Invalid verification code.", ErrorCode.INVALID_OTP_CODE)

        if not await self.otps.validate(account.id, code, OtpPurpose.PASSWORD_RESET):
            logger.warning(f"Invalid password reset code for account {account.external_id}")
            return Result.failure(INVALID_OTP_MESSAGE, ErrorCode.INVALID_OTP_CODE)

        external_id = account.external_id
        try:
            await self.accounts.reset_password(account, new_password)
        except AccountOperationError as err:
            # Leaves the code unused
            await self._session.rollback()
            logger.warning(f"Password reset rejected for account {external_id}")
            return Result.failure(err.errors, ErrorCode.PASSWORD_RESET_FAILED)

        await self.accounts.update_security_stamp(account)
        await self.refresh_tokens.revoke_all_for_account(account.id)
        await self._commit(PasswordReset(external_id, self._clock.now()))
        logger.info(f"Password reset for account {external_id}")
        return Result.success()

    # Queries

    async def get_current_user(self, account_id: int | None) -> Result[UserDto]:
        if account_id is None:
            return Result.failure(NOT_AUTHENTICATED_MESSAGE, ErrorCode.UNAUTHORIZED)

        account = await self.accounts.get_by_id(account_id)
        if account is None:
            return Result.failure(USER_NOT_FOUND_MESSAGE, ErrorCode.NOT_FOUND)

        return Result.success(to_user_dto(account))
