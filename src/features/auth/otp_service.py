"""One-time code issuance, validation and per-account rate limiting."""

import logging
import secrets
from datetime import timedelta

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.config.settings import settings
from src.features.account.models import Account
from src.shared.clock import Clock, system_clock

from .models import OtpCode, OtpPurpose

logger = logging.getLogger(__name__)


class OtpService:
    """Single-use, expiring six-digit codes.

    ``issue`` applies the per-account rate limit; ``create`` does not.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Clock = system_clock,
        validity: timedelta | None = None,
        rate_limit_window: timedelta | None = None,
        max_requests_per_window: int | None = None,
    ):
        self._session = session
        self._clock = clock
        self.validity = validity or timedelta(minutes=settings.otp_validity_minutes)
        self.rate_limit_window = rate_limit_window or timedelta(minutes=settings.otp_rate_limit_window_minutes)
        self.max_requests_per_window = max_requests_per_window or settings.otp_max_requests_per_window

    @staticmethod
    def generate_code() -> str:
        """Uniform over 100000-999999."""
        return str(secrets.randbelow(900_000) + 100_000)

    async def create(self, account_id: int, purpose: OtpPurpose) -> str:
        """Persist a fresh code and return it in plaintext for delivery."""
        now = self._clock.now()
        code = self.generate_code()
        self._session.add(
            OtpCode(
                account_id=account_id,
                code=code,
                purpose=purpose.value,
                created_at=now,
                expires_at=now + self.validity,
                is_used=False,
            )
        )
        await self._session.flush()
        return code

    async def validate(self, account_id: int, code: str, purpose: OtpPurpose) -> bool:
        """Consume a matching, unused, unexpired code.

        The used flag is flipped with a conditional UPDATE; only the request
        whose statement changes the row wins.
        """
        now = self._clock.now()
        stmt = (
            select(OtpCode.id)
            .where(
                OtpCode.account_id == account_id,
                OtpCode.code == code,
                OtpCode.purpose == purpose.value,
                OtpCode.is_used.is_(False),
                OtpCode.expires_at > now,
            )
            .order_by(OtpCode.created_at.desc())
            .limit(1)
        )
        otp_id = (await self._session.execute(stmt)).scalar_one_or_none()
        if otp_id is None:
            return False

        consume = (
            update(OtpCode)
            .where(OtpCode.id == otp_id, OtpCode.is_used.is_(False))
            .values(is_used=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(consume)
        if result.rowcount != 1:
            logger.warning(f"OTP for account {account_id} was consumed concurrently")
            return False
        return True

    async def invalidate(self, account_id: int, purpose: OtpPurpose) -> int:
        """Mark every outstanding code for the account and purpose as used."""
        stmt = (
            update(OtpCode)
            .where(
                OtpCode.account_id == account_id,
                OtpCode.purpose == purpose.value,
                OtpCode.is_used.is_(False),
            )
            .values(is_used=True)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def is_rate_limited(self, account_id: int, purpose: OtpPurpose) -> bool:
        """True once the trailing window already holds the maximum number of codes."""
        window_start = self._clock.now() - self.rate_limit_window
        stmt = select(func.count(OtpCode.id)).where(
            OtpCode.account_id == account_id,
            OtpCode.purpose == purpose.value,
            OtpCode.created_at >= window_start,
        )
        count = (await self._session.execute(stmt)).scalar_one()
        return count >= self.max_requests_per_window

    async def issue(self, account_id: int, purpose: OtpPurpose) -> str | None:
        """Create a code unless the account is rate limited.

        The account row is write-locked before counting, so concurrent
        requests for one account check and insert one at a time. The lock is
        held until the caller's transaction ends.

        Returns:
            The new code, or None when the window is already full

        """
        await self._lock_account(account_id)
        if await self.is_rate_limited(account_id, purpose):
            return None
        return await self.create(account_id, purpose)

    async def _lock_account(self, account_id: int) -> None:
        # An UPDATE takes the row lock on PostgreSQL and the write lock on SQLite
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(updated_at=self._clock.now())
            .execution_options(synchronize_session=False)
        )
        await self._session.execute(stmt)
