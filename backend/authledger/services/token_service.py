"""Token lifecycle: issuance, rotation, revocation and password recovery.

``TokenService`` keeps no per-request state. Every operation takes the
request's session, re-reads what it needs and commits its own unit of work.
Concurrency safety comes from conditional updates on the active flags and
from the unique indexes, never from locks held here.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from authledger.database import atomic, utcnow
from authledger.errors import (
    InvalidCredentialError,
    InvalidRecoveryToken,
    InvalidRefreshToken,
    InvalidTokenError,
    UserNotFound,
)
from authledger.logging import get_logger
from authledger.models.user import User, UserRole, normalize
from authledger.roles import Role, role_from_id
from authledger.services import recovery_ledger, revocation, token_ledger
from authledger.services.email import EmailSender
from authledger.services.passwords import hash_password, needs_rehash, verify_password
from authledger.services.token_signer import TokenClass, TokenSigner, VerifiedClaims

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expire_at: datetime
    refresh_expire_at: datetime


def parse_authorization(header: str | None) -> tuple[str, str] | None:
    """Split a ``"<scheme> <token>"`` header; ``None`` unless exactly two parts."""
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2:
        return None
    return parts[0], parts[1]


class TokenService:
    def __init__(
        self,
        signer: TokenSigner,
        email_sender: EmailSender,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.signer = signer
        self.email_sender = email_sender
        self.clock = clock

    # Issuance

    def sign_in(self, db: Session, login: str, password: str) -> TokenPair:
        with atomic(db):
            user = db.query(User).filter(User.login_normalized == normalize(login)).first()
            if user is None:
                logger.info("sign_in_rejected", reason="unknown_login")
                raise UserNotFound()
            if not verify_password(password, user.password_hash):
                logger.info("sign_in_rejected", reason="bad_password", user_id=user.id)
                raise InvalidCredentialError()

            if needs_rehash(user.password_hash):
                user.password_hash = hash_password(password)

            user_id = user.id
            pair = self.issue_pair(db, user_id)
        logger.info("sign_in_succeeded", user_id=user_id)
        return pair

    def issue_pair(self, db: Session, user_id: str) -> TokenPair:
        """Mint and record a pair using the user's current roles. Does not commit."""
        roles = self.current_roles(db, user_id)
        access = self.signer.mint(user_id, TokenClass.ACCESS, roles)
        refresh = self.signer.mint(user_id, TokenClass.REFRESH)
        token_ledger.record_pair(db, user_id, access, refresh)
        return TokenPair(
            access_token=access.token,
            refresh_token=refresh.token,
            access_expire_at=access.expire_at,
            refresh_expire_at=refresh.expire_at,
        )

    @staticmethod
    def current_roles(db: Session, user_id: str) -> list[Role]:
        rows = db.query(UserRole.role_id).filter(UserRole.user_id == user_id).all()
        return sorted(role_from_id(role_id) for (role_id,) in rows)

    # Rotation

    def refresh(self, db: Session, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair, consuming it.

        Forged, expired, rotated and revoked tokens all fail the same way.
        """
        try:
            self.signer.verify(refresh_token, TokenClass.REFRESH)
        except InvalidTokenError:
            logger.info("refresh_rejected")
            raise InvalidRefreshToken() from None

        with atomic(db):
            record = token_ledger.consume_refresh(db, refresh_token, self.clock())
            if record is None:
                logger.info("refresh_rejected")
                raise InvalidRefreshToken()
            user_id = record.user_id
            pair = self.issue_pair(db, user_id)
        logger.info("refresh_rotated", user_id=user_id)
        return pair

    # Revocation

    def revoke_all(self, db: Session, user_id: str) -> int:
        """Revoke every active pair of a user in one transaction."""
        with atomic(db):
            count = self.revoke_user_tokens(db, user_id)
        logger.info("tokens_revoked", user_id=user_id, pairs=count)
        return count

    @staticmethod
    def revoke_user_tokens(db: Session, user_id: str) -> int:
        """Deactivate active pairs and record both strings as revoked. Does not commit."""
        pairs = token_ledger.deactivate_all(db, user_id)
        revocation.revoke(db, [
            entry
            for pair in pairs
            for entry in (
                (pair.access_token, pair.access_expire_at),
                (pair.refresh_token, pair.refresh_expire_at),
            )
        ])
        return len(pairs)

    # Inbound requests

    @staticmethod
    def is_trusted(db: Session, authorization: str | None) -> bool:
        """Revocation check only; malformed headers pass through to signature checks."""
        parsed = parse_authorization(authorization)
        if parsed is None:
            return True
        _, token = parsed
        return not revocation.is_revoked(db, token)

    def authenticate(self, db: Session, authorization: str | None) -> VerifiedClaims:
        """Full gate for an API call: valid access token that is not revoked."""
        parsed = parse_authorization(authorization)
        if parsed is None or parsed[0].lower() != "bearer":
            raise InvalidTokenError()
        claims = self.signer.verify(parsed[1], TokenClass.ACCESS)
        if not self.is_trusted(db, authorization):
            raise InvalidTokenError()
        return claims

    # Recovery

    def request_recovery(self, db: Session, email: str) -> None:
        """Mint and mail a recovery token. Unknown addresses succeed silently."""
        with atomic(db):
            user = db.query(User).filter(User.email_normalized == normalize(email)).first()
            if user is None:
                recovery = None
            else:
                user_id, address = user.id, user.email
                recovery = self.signer.mint(user_id, TokenClass.RECOVERY)
                recovery_ledger.record(db, recovery)

        if recovery is None:
            logger.info("recovery_requested", matched=False)
            return
        logger.info("recovery_requested", matched=True, user_id=user_id)

        # Delivery problems never reach the caller
        try:
            self.email_sender.send_recovery(address, recovery.token)
        except Exception:
            logger.exception("recovery_email_failed", user_id=user_id)

    def redeem_recovery(self, db: Session, token: str, new_password: str) -> None:
        """Consume a recovery token and set a new password atomically."""
        try:
            claims = self.signer.verify(token, TokenClass.RECOVERY)
        except InvalidTokenError:
            logger.info("recovery_rejected")
            raise InvalidRecoveryToken() from None

        with atomic(db):
            if not recovery_ledger.consume(db, token, self.clock()):
                logger.info("recovery_rejected", user_id=claims.user_id)
                raise InvalidRecoveryToken()
            user = db.get(User, claims.user_id)
            if user is None:
                raise InvalidRecoveryToken()
            user.password_hash = hash_password(new_password)
        logger.info("recovery_redeemed", user_id=claims.user_id)
