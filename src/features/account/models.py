"""Account domain models."""

import secrets
from datetime import datetime
from enum import StrEnum

from pwdlib import PasswordHash
from sqlalchemy import JSON, Boolean, Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from src.database.base import Base, TimestampMixin, UTCDateTime


class AccountRole(StrEnum):
    """Role names for authorization.

    ADMIN: Full system access.
    MANAGER: Manages products, orders and users.
    STAFF: Processes orders and inventory.
    CUSTOMER: Default role for self-registered accounts.
    """

    ADMIN = "Admin"
    MANAGER = "Manager"
    STAFF = "Staff"
    CUSTOMER = "Customer"


class AccountStatus(StrEnum):
    """Account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    BANNED = "banned"


pwd_hasher = PasswordHash.recommended()


def new_security_stamp() -> str:
    """Opaque value replaced whenever credentials change."""
    return secrets.token_hex(16)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class Account(Base, TimestampMixin):
    """Registered account.

    ``id`` is the internal sequential key and never leaves the server;
    ``external_id`` is what clients see.
    """

    __tablename__ = "accounts"

    # Internal key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Public identity
    external_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    normalized_email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Authentication
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    security_stamp: Mapped[str] = mapped_column(String(64), nullable=False, default=new_security_stamp)
    email_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")

    # Authorization
    roles: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: [AccountRole.CUSTOMER.value],
    )

    # Status
    status: Mapped[str] = mapped_column(
        Enum(AccountStatus, native_enum=False, length=50, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AccountStatus.ACTIVE.value,
        server_default=AccountStatus.ACTIVE.value,
        index=True,
    )

    # Lockout
    failed_login_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    lockout_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Audit
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        """Computed property: account is active if status is ACTIVE."""
        return self.status == AccountStatus.ACTIVE.value

    def verify_password(self, plain_password: str) -> bool:
        """Verify a password against the Argon2 hash."""
        return pwd_hasher.verify(plain_password, self.hashed_password)

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using Argon2.

        Salt is automatically generated and embedded in the returned hash.
        """
        return pwd_hasher.hash(password)

    def has_role(self, role: AccountRole) -> bool:
        return role.value in (self.roles or [])

    def is_locked(self, now: datetime) -> bool:
        """True while a lockout end is set and still in the future."""
        return self.lockout_end is not None and self.lockout_end > now
