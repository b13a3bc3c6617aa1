"""JWT utilities for authentication."""

import secrets
import uuid
from datetime import datetime, timedelta
from typing import Any

import jwt
from jwt.exceptions import InvalidTokenError

from src.config.settings import settings
from src.shared.clock import Clock, system_clock

REQUIRED_CLAIMS = ["sub", "uid", "jti", "exp", "iat", "iss", "aud"]
# Repeated claim: one value per role membership
ROLE_CLAIM = "role"


class TokenService:
    """Issue and validate access tokens; mint opaque refresh tokens.

    Signature, issuer, audience and expiry failures all collapse to ``None``
    so callers cannot tell why a token was rejected.
    """

    def __init__(
        self,
        clock: Clock = system_clock,
        secret_key: str | None = None,
        algorithm: str | None = None,
        issuer: str | None = None,
        audience: str | None = None,
        access_token_lifetime: timedelta | None = None,
        refresh_token_lifetime: timedelta | None = None,
    ):
        self._clock = clock
        self._secret_key = secret_key or settings.jwt_secret_key
        self._algorithm = algorithm or settings.jwt_algorithm
        self.issuer = issuer or settings.jwt_issuer
        self.audience = audience or settings.jwt_audience
        self.access_token_lifetime = access_token_lifetime or timedelta(minutes=settings.access_token_expire_minutes)
        self.refresh_token_lifetime = refresh_token_lifetime or timedelta(days=settings.refresh_token_expire_days)

    def access_token_expiry(self) -> datetime:
        return self._clock.now() + self.access_token_lifetime

    def refresh_token_expiry(self) -> datetime:
        return self._clock.now() + self.refresh_token_lifetime

    def issue_access_token(
        self,
        account_id: int,
        external_id: str,
        email: str,
        full_name: str,
        roles: list[str],
        security_stamp: str | None = None,
    ) -> str:
        """Create a signed access token.

        Args:
            account_id: Internal key, carried in ``uid`` for server-side lookups only
            external_id: Public identifier, used as the subject
            email: Account email
            full_name: Display name
            roles: Role memberships, one ``role`` value each
            security_stamp: Current stamp; tokens with an outdated stamp are stale

        Returns:
            Encoded JWT token string

        """
        issued_at = self._clock.now()
        payload: dict[str, Any] = {
            "sub": external_id,
            "uid": str(account_id),
            "email": email,
            "name": full_name,
            ROLE_CLAIM: list(roles),
            "jti": uuid.uuid4().hex,
            "iat": issued_at,
            "exp": issued_at + self.access_token_lifetime,
            "iss": self.issuer,
            "aud": self.audience,
        }
        if security_stamp is not None:
            payload["stamp"] = security_stamp

        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    @staticmethod
    def issue_refresh_token() -> str:
        """64 random bytes, URL-safe base64."""
        return secrets.token_urlsafe(64)

    def validate_access_token(self, token: str) -> dict[str, Any] | None:
        """Decode a token, checking signature, issuer, audience and expiry.

        Expiry is compared against the injected clock with no leeway: a token
        is invalid at its ``exp`` instant.
        """
        claims = self._decode(token)
        if claims is None:
            return None

        expires_at = claims["exp"]
        if not isinstance(expires_at, int | float) or expires_at <= self._clock.now().timestamp():
            return None
        return claims

    def read_expired_token_claims(self, token: str) -> dict[str, Any] | None:
        """Decode a token without the expiry check. Everything else is still verified."""
        return self._decode(token)

    def _decode(self, token: str) -> dict[str, Any] | None:
        try:
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_exp": False, "verify_iat": False, "require": REQUIRED_CLAIMS},
            )
        except InvalidTokenError:
            return None
