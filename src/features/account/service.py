"""Account service layer: lookups, credentials, email confirmation and lockout."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.exc import StaleDataError

from src.config.logging_config import redact_email
from src.config.settings import settings
from src.shared.clock import Clock, system_clock
from src.shared.validators.password import password_policy_errors

from .exceptions import EmailAlreadyExists, IncorrectPassword, NotInRole, WeakPassword
from .models import Account, AccountRole, AccountStatus, new_security_stamp, normalize_email

logger = logging.getLogger(__name__)


class AccountService:
    """Account directory and failed-attempt lockout policy.

    Counters and flags are written with single-row UPDATE statements so that
    concurrent requests against the same account serialize in the database.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = system_clock,
        max_failed_attempts: int | None = None,
        lockout_duration: timedelta | None = None,
    ):
        self._session = session
        self._clock = clock
        self.max_failed_attempts = max_failed_attempts or settings.lockout_max_failed_attempts
        self.lockout_duration = lockout_duration or timedelta(minutes=settings.lockout_duration_minutes)

    # Lookups

    async def get_by_id(self, account_id: int) -> Account | None:
        stmt = select(Account).where(Account.id == account_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Account | None:
        """Case-insensitive lookup by email."""
        stmt = select(Account).where(Account.normalized_email == normalize_email(email))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_external_id(self, external_id: str) -> Account | None:
        stmt = select(Account).where(Account.external_id == external_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    # Creation

    async def create_account(
        self,
        external_id: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> Account:
        """Create an unconfirmed account with the Customer role.

        Raises:
            WeakPassword: If the password violates the policy
            EmailAlreadyExists: If the normalized email is taken

        """
        errors = password_policy_errors(password)
        if errors:
            raise WeakPassword(errors)

        if await self.email_exists(email):
            raise EmailAlreadyExists(email)

        now = self._clock.now()
        account = Account(
            external_id=external_id,
            email=email.strip(),
            normalized_email=normalize_email(email),
            first_name=first_name,
            last_name=last_name,
            hashed_password=Account.hash_password(password),
            security_stamp=new_security_stamp(),
            email_confirmed=False,
            roles=[AccountRole.CUSTOMER.value],
            status=AccountStatus.ACTIVE.value,
            failed_login_attempts=0,
            created_at=now,
            updated_at=now,
        )
        self._session.add(account)
        try:
            await self._session.flush()
        except IntegrityError as err:
            # Lost a race against a concurrent registration
            await self._session.rollback()
            raise EmailAlreadyExists(email) from err

        logger.info(f"Account created: {account.external_id} ({redact_email(account.email)})")
        return account

    # Credentials

    def check_password(self, account: Account, password: str) -> bool:
        return account.verify_password(password)

    async def change_password(self, account: Account, current_password: str, new_password: str) -> None:
        """Replace the password after proving the current one.

        Raises:
            IncorrectPassword: If current_password does not match
            WeakPassword: If new_password violates the policy

        """
        if not account.verify_password(current_password):
            raise IncorrectPassword()

        errors = password_policy_errors(new_password)
        if errors:
            raise WeakPassword(errors)

        account.hashed_password = Account.hash_password(new_password)
        account.updated_at = self._clock.now()
        await self._session.flush()
        logger.info(f"Password changed for account {account.external_id}")

    async def reset_password(self, account: Account, new_password: str) -> None:
        """Replace the password without the current one (OTP-proven reset).

        Raises:
            WeakPassword: If new_password violates the policy

        """
        errors = password_policy_errors(new_password)
        if errors:
            raise WeakPassword(errors)

        account.hashed_password = Account.hash_password(new_password)
        account.updated_at = self._clock.now()
        await self._session.flush()
        logger.info(f"Password reset for account {account.external_id}")

    async def confirm_email(self, account: Account) -> bool:
        """Mark the email as confirmed. Returns False if the row is gone."""
        account.email_confirmed = True
        account.updated_at = self._clock.now()
        try:
            await self._session.flush()
        except StaleDataError:
            logger.error(f"Could not confirm email for account {account.external_id}: row no longer exists")
            return False
        return True

    async def update_security_stamp(self, account: Account) -> str:
        """Invalidate every access token issued against the previous stamp."""
        account.security_stamp = new_security_stamp()
        account.updated_at = self._clock.now()
        await self._session.flush()
        return account.security_stamp

    # Lockout

    def is_locked_out(self, account: Account) -> bool:
        return account.is_locked(self._clock.now())

    def get_lockout_end(self, account: Account) -> datetime | None:
        return account.lockout_end

    async def record_failed_attempt(self, account: Account) -> bool:
        """Count a failed password check.

        The increment happens in the database so concurrent failures are
        never lost. Reaching the threshold sets the lockout end and starts
        a fresh count.

        Returns:
            True if this failure engaged the lockout

        """
        now = self._clock.now()
        stmt = (
            update(Account)
            .where(Account.id == account.id)
            .values(failed_login_attempts=Account.failed_login_attempts + 1, updated_at=now)
            .returning(Account.failed_login_attempts)
            .execution_options(synchronize_session=False)
        )
        attempts = (await self._session.execute(stmt)).scalar_one()
        set_committed_value(account, "failed_login_attempts", attempts)
        set_committed_value(account, "updated_at", now)

        if attempts < self.max_failed_attempts:
            return False

        lockout_end = now + self.lockout_duration
        stmt = (
            update(Account)
            .where(Account.id == account.id)
            .values(lockout_end=lockout_end, failed_login_attempts=0)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)
        set_committed_value(account, "lockout_end", lockout_end)
        set_committed_value(account, "failed_login_attempts", 0)

        logger.warning(f"Account {account.external_id} locked until {lockout_end.isoformat()}")
        return True

    async def reset_failed_attempts(self, account: Account) -> None:
        now = self._clock.now()
        stmt = (
            update(Account)
            .where(Account.id == account.id)
            .values(failed_login_attempts=0, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)
        set_committed_value(account, "failed_login_attempts", 0)
        set_committed_value(account, "updated_at", now)

    async def record_login(self, account: Account) -> None:
        now = self._clock.now()
        account.last_login_at = now
        account.updated_at = now
        await self._session.flush()

    # Roles

    async def get_roles(self, account_id: int) -> list[str]:
        account = await self.get_by_id(account_id)
        return list(account.roles) if account else []

    async def add_to_role(self, account: Account, role: AccountRole) -> None:
        if account.has_role(role):
            return
        account.roles = [*account.roles, role.value]
        account.updated_at = self._clock.now()
        await self._session.flush()
        logger.info(f"Role {role.value} added to account {account.external_id}")

    async def remove_from_role(self, account: Account, role: AccountRole) -> None:
        if not account.has_role(role):
            raise NotInRole(role.value)
        account.roles = [r for r in account.roles if r != role.value]
        account.updated_at = self._clock.now()
        await self._session.flush()
        logger.info(f"Role {role.value} removed from account {account.external_id}")
