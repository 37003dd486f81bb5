"""Signed, time-bounded bearer tokens.

Each token class has its own secret, lifetime and audience (the class
name). Tokens are JWTs signed with HMAC-SHA256 and carry the issuer, the
audience, the subject, a unique ``jti`` and, for access tokens only, the
role claims.

Cryptographic validity is necessary but not sufficient for trust: callers
must also consult the revocation store.
"""
from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from jose import JWTError, jwt

from authledger.config import Settings, check_secret_strength
from authledger.database import utcnow
from authledger.errors import InvalidTokenError
from authledger.roles import Role, build_claims, roles_from_claims


class TokenClass(str, Enum):
    ACCESS = "Access"
    REFRESH = "Refresh"
    RECOVERY = "Recovery"


@dataclass(frozen=True)
class TokenClassConfig:
    secret_key: str
    lifetime: timedelta


@dataclass(frozen=True)
class SignedToken:
    token: str
    expire_at: datetime


@dataclass(frozen=True)
class VerifiedClaims:
    user_id: str
    token_class: TokenClass
    roles: list[Role]
    expire_at: datetime
    token_id: str


class TokenSigner:
    """Mints and verifies tokens for the three token classes."""

    def __init__(
        self,
        configs: dict[TokenClass, TokenClassConfig],
        issuer: str,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        missing = set(TokenClass) - set(configs)
        if missing:
            raise ValueError(f"Missing token configuration for: {sorted(c.value for c in missing)}")
        self._configs = dict(configs)
        self._lock = threading.Lock()
        self.issuer = issuer
        self.algorithm = algorithm
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], datetime] = utcnow) -> "TokenSigner":
        return cls(
            {
                TokenClass.ACCESS: TokenClassConfig(
                    settings.access_secret_key,
                    timedelta(minutes=settings.access_token_expire_minutes),
                ),
                TokenClass.REFRESH: TokenClassConfig(
                    settings.refresh_secret_key,
                    timedelta(minutes=settings.refresh_token_expire_minutes),
                ),
                TokenClass.RECOVERY: TokenClassConfig(
                    settings.recovery_secret_key,
                    timedelta(minutes=settings.recovery_token_expire_minutes),
                ),
            },
            issuer=settings.token_issuer,
            algorithm=settings.algorithm,
            clock=clock,
        )

    def lifetime(self, token_class: TokenClass) -> timedelta:
        return self._configs[token_class].lifetime

    def rotate_secret(self, token_class: TokenClass, new_secret: str) -> None:
        """Replace the signing secret of one class.

        Every outstanding token of that class stops verifying immediately.
        Rotating all three classes logs every user out.
        """
        check_secret_strength(new_secret, f"{token_class.value} secret")
        with self._lock:
            current = self._configs[token_class]
            self._configs[token_class] = TokenClassConfig(new_secret, current.lifetime)

    def mint(
        self,
        user_id: str,
        token_class: TokenClass,
        roles: Iterable[Role] = (),
    ) -> SignedToken:
        config = self._configs[token_class]
        expire_at = (self.clock() + config.lifetime).replace(microsecond=0)

        claims = build_claims(user_id, roles if token_class is TokenClass.ACCESS else None)
        claims.update({
            "iss": self.issuer,
            "aud": token_class.value,
            "exp": expire_at,
            "jti": str(uuid.uuid4()),
        })
        token = jwt.encode(claims, config.secret_key, algorithm=self.algorithm)
        return SignedToken(token=token, expire_at=expire_at)

    def verify(self, token: str, token_class: TokenClass | None = None) -> VerifiedClaims:
        """Check signature, audience, issuer and expiry.

        With ``token_class`` omitted the class is taken from the token's
        audience before the signature is checked against that class's secret.
        """
        if token_class is None:
            token_class = self._unverified_class(token)
        config = self._configs[token_class]

        try:
            payload = jwt.decode(
                token,
                config.secret_key,
                algorithms=[self.algorithm],
                audience=token_class.value,
                issuer=self.issuer,
            )
            user_id = payload.get("sub")
            if not user_id:
                raise InvalidTokenError()
            roles = roles_from_claims(payload.get("roles", []))
        except (JWTError, ValueError, TypeError):
            raise InvalidTokenError() from None

        return VerifiedClaims(
            user_id=user_id,
            token_class=token_class,
            roles=roles,
            expire_at=datetime.fromtimestamp(payload["exp"], timezone.utc).replace(tzinfo=None),
            token_id=payload.get("jti", ""),
        )

    def _unverified_class(self, token: str) -> TokenClass:
        try:
            audience = jwt.get_unverified_claims(token).get("aud")
            return TokenClass(audience)
        except (JWTError, ValueError, TypeError):
            raise InvalidTokenError() from None
