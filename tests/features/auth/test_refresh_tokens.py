"""Tests for the refresh token ledger."""

from datetime import timedelta

import pytest

from src.features.auth.refresh_tokens import RefreshTokenRepository


@pytest.fixture
def repository(session, clock) -> RefreshTokenRepository:
    return RefreshTokenRepository(session, clock)


class TestRefreshTokenRepository:
    async def test_create_and_get(self, repository, make_account, clock):
        account = await make_account()
        await repository.create(account.id, "token-a", clock.now() + timedelta(days=7), ip_address="10.0.0.1")

        record = await repository.get_by_token("token-a")
        assert record is not None
        assert record.account_id == account.id
        assert record.ip_address == "10.0.0.1"
        assert record.is_active(clock.now())

    async def test_unknown_token(self, repository):
        assert await repository.get_by_token("missing") is None

    async def test_inactive_at_expiry(self, repository, make_account, clock):
        account = await make_account()
        record = await repository.create(account.id, "token-a", clock.now() + timedelta(days=7))

        assert record.is_active(clock.now() + timedelta(days=7) - timedelta(seconds=1))
        assert not record.is_active(clock.now() + timedelta(days=7))

    async def test_revoke_with_replacement(self, repository, make_account, clock):
        account = await make_account()
        await repository.create(account.id, "token-a", clock.now() + timedelta(days=7))

        assert await repository.revoke("token-a", replaced_by="token-b") is True

        record = await repository.get_by_token("token-a")
        assert record.revoked_at == clock.now()
        assert record.replaced_by == "token-b"
        assert not record.is_active(clock.now())

    async def test_revoke_is_one_shot(self, repository, make_account, clock):
        account = await make_account()
        await repository.create(account.id, "token-a", clock.now() + timedelta(days=7))
        await repository.revoke("token-a", replaced_by="token-b")

        clock.advance(timedelta(minutes=1))
        assert await repository.revoke("token-a", replaced_by="token-c") is False

        record = await repository.get_by_token("token-a")
        assert record.replaced_by == "token-b"

    async def test_revoke_unknown_token_is_noop(self, repository):
        assert await repository.revoke("missing") is False

    async def test_revoke_all_for_account(self, repository, make_account, clock):
        account = await make_account()
        other = await make_account()
        for token in ("a", "b", "c"):
            await repository.create(account.id, token, clock.now() + timedelta(days=7))
        await repository.create(other.id, "other", clock.now() + timedelta(days=7))

        assert await repository.revoke_all_for_account(account.id) == 3
        assert await repository.count_active_for_account(account.id) == 0
        assert await repository.count_active_for_account(other.id) == 1
