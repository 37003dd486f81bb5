"""Append-only store of untrusted token strings."""
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy.orm import Session

from authledger.models.auth import RevokedToken


def revoke(db: Session, tokens: Iterable[tuple[str, datetime]]) -> int:
    """Record ``(token, original_expiry)`` pairs as revoked. Does not commit."""
    rows = [RevokedToken(token=token, token_expire_at=expire_at) for token, expire_at in tokens]
    db.add_all(rows)
    db.flush()
    return len(rows)


def is_revoked(db: Session, token: str) -> bool:
    return db.query(RevokedToken.id).filter(RevokedToken.token == token).first() is not None
