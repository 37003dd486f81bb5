"""Token ledger models."""
import uuid

from sqlalchemy import Boolean, Column, DateTime, Index, String

from authledger.database import Base, utcnow

TOKEN_LENGTH = 2048


class TokenRecord(Base):
    """An issued access/refresh pair.

    Only ``refresh_active`` ever changes, and only from true to false.
    Rows are kept after rotation, revocation and deletion of the owning
    user as an audit trail, so ``user_id`` is not a foreign key.
    """

    __tablename__ = "tokens"
    __table_args__ = (
        Index("ix_tokens_user_active", "user_id", "refresh_active"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    access_token = Column(String(TOKEN_LENGTH), unique=True, nullable=False)
    refresh_token = Column(String(TOKEN_LENGTH), unique=True, nullable=False)
    access_expire_at = Column(DateTime, nullable=False)
    refresh_expire_at = Column(DateTime, nullable=False)
    refresh_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class RevokedToken(Base):
    """A token string that is no longer trusted, whatever its own expiry says."""

    __tablename__ = "revoked_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(TOKEN_LENGTH), unique=True, nullable=False)
    token_expire_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, default=utcnow, nullable=False)


class RecoveryToken(Base):
    """An issued password-recovery token; ``active`` flips to false once redeemed."""

    __tablename__ = "recovery_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(TOKEN_LENGTH), unique=True, nullable=False)
    expire_at = Column(DateTime, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
