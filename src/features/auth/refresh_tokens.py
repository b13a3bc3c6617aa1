"""Refresh token ledger."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.shared.clock import Clock, system_clock

from .models import RefreshToken


class RefreshTokenRepository:
    """Persistence for refresh tokens.

    Revocation is a conditional UPDATE on ``revoked_at IS NULL``, so a token
    can be revoked once and never reactivated.
    """

    def __init__(self, session: AsyncSession, clock: Clock = system_clock):
        self._session = session
        self._clock = clock

    async def create(
        self,
        account_id: int,
        token: str,
        expires_at: datetime,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RefreshToken:
        record = RefreshToken(
            account_id=account_id,
            token=token,
            expires_at=expires_at,
            created_at=self._clock.now(),
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def get_by_token(self, token: str) -> RefreshToken | None:
        stmt = select(RefreshToken).where(RefreshToken.token == token).execution_options(populate_existing=True)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def revoke(self, token: str, replaced_by: str | None = None) -> bool:
        """Revoke a token if it is still unrevoked.

        Returns:
            True if this call revoked it; False for unknown or already-revoked tokens

        """
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=self._clock.now(), replaced_by=replaced_by)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def revoke_all_for_account(self, account_id: int) -> int:
        """Revoke every active token of the account. Returns how many were revoked."""
        now = self._clock.now()
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.account_id == account_id,
                RefreshToken.revoked_at.is_(None),
                RefreshToken.expires_at > now,
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def count_active_for_account(self, account_id: int) -> int:
        now = self._clock.now()
        stmt = select(RefreshToken).where(
            RefreshToken.account_id == account_id,
            RefreshToken.revoked_at.is_(None),
            RefreshToken.expires_at > now,
        )
        result = await self._session.execute(stmt)
        return len(result.scalars().all())
