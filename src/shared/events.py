"""Post-commit hooks.

Workflows collect the state changes they make and hand them to an
``EventDispatcher`` once their unit of work has been committed. Hooks run in
registration order; a failing hook is logged and skipped so it never fails
the operation that produced the events.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthEvent:
    """Base class for authentication state changes."""

    account_external_id: str
    occurred_at: datetime


@dataclass(frozen=True)
class AccountRegistered(AuthEvent):
    pass


@dataclass(frozen=True)
class EmailVerified(AuthEvent):
    pass


@dataclass(frozen=True)
class PasswordChanged(AuthEvent):
    pass


@dataclass(frozen=True)
class PasswordReset(AuthEvent):
    pass


@dataclass(frozen=True)
class SessionsRevoked(AuthEvent):
    """All refresh tokens of the account were revoked."""

    reason: str = "logout_all"


class PostCommitHook(Protocol):
    async def __call__(self, events: Sequence[AuthEvent]) -> None: ...


class LoggingHook:
    """Record every event in the application log."""

    async def __call__(self, events: Sequence[AuthEvent]) -> None:
        for event in events:
            logger.info(f"{type(event).__name__} account={event.account_external_id} at={event.occurred_at.isoformat()}")


class EventDispatcher:
    """Invoke post-commit hooks in order."""

    def __init__(self, hooks: Sequence[PostCommitHook] = ()):
        self._hooks = list(hooks)

    @property
    def hooks(self) -> list[PostCommitHook]:
        return list(self._hooks)

    def register(self, hook: PostCommitHook) -> None:
        self._hooks.append(hook)

    async def dispatch(self, events: Sequence[AuthEvent]) -> None:
        if not events:
            return
        for hook in self._hooks:
            try:
                await hook(events)
            except Exception:
                logger.exception(f"Post-commit hook {hook!r} failed")


class NoOpEventDispatcher(EventDispatcher):
    """Dispatcher that drops every event."""

    def __init__(self):
        super().__init__(())

    async def dispatch(self, events: Sequence[AuthEvent]) -> None:
        return None


default_dispatcher = EventDispatcher([LoggingHook()])


def get_event_dispatcher() -> EventDispatcher:
    """FastAPI dependency returning the application dispatcher."""
    return default_dispatcher
