"""Persistent record of issued recovery tokens."""
from datetime import datetime

from sqlalchemy.orm import Session

from authledger.models.auth import RecoveryToken
from authledger.services.token_signer import SignedToken


def record(db: Session, recovery: SignedToken) -> RecoveryToken:
    row = RecoveryToken(token=recovery.token, expire_at=recovery.expire_at, active=True)
    db.add(row)
    db.flush()
    return row


def consume(db: Session, token: str, now: datetime) -> bool:
    """Deactivate an active, unexpired recovery token; ``False`` if there was none."""
    matched = db.query(RecoveryToken).filter(
        RecoveryToken.token == token,
        RecoveryToken.active.is_(True),
        RecoveryToken.expire_at > now,
    ).update(
        {"active": False},
        synchronize_session=False,
    )
    return matched == 1
