"""Persistent record of issued access/refresh pairs.

None of these functions commit; callers own the transaction.
"""
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from authledger.models.auth import TokenRecord
from authledger.services.token_signer import SignedToken


@dataclass(frozen=True)
class DeactivatedPair:
    access_token: str
    access_expire_at: datetime
    refresh_token: str
    refresh_expire_at: datetime


def record_pair(db: Session, user_id: str, access: SignedToken, refresh: SignedToken) -> TokenRecord:
    """Persist a freshly minted pair with an active refresh token."""
    record = TokenRecord(
        user_id=user_id,
        access_token=access.token,
        refresh_token=refresh.token,
        access_expire_at=access.expire_at,
        refresh_expire_at=refresh.expire_at,
        refresh_active=True,
    )
    db.add(record)
    db.flush()
    return record


def consume_refresh(db: Session, refresh_token: str, now: datetime) -> TokenRecord | None:
    """Deactivate an active, unexpired refresh token and return its record.

    The conditional update is the gate: of several concurrent callers
    presenting the same token, exactly one sees a matched row.
    """
    matched = db.query(TokenRecord).filter(
        TokenRecord.refresh_token == refresh_token,
        TokenRecord.refresh_active.is_(True),
        TokenRecord.refresh_expire_at > now,
    ).update(
        {"refresh_active": False},
        synchronize_session=False,
    )
    if matched != 1:
        return None

    record = db.query(TokenRecord).filter(TokenRecord.refresh_token == refresh_token).one()
    db.refresh(record)
    return record


def deactivate_all(db: Session, user_id: str) -> list[DeactivatedPair]:
    """Flip every active pair of a user to inactive, returning what was flipped."""
    stmt = (
        update(TokenRecord)
        .where(
            TokenRecord.user_id == user_id,
            TokenRecord.refresh_active.is_(True),
        )
        .values(refresh_active=False)
        .returning(
            TokenRecord.access_token,
            TokenRecord.access_expire_at,
            TokenRecord.refresh_token,
            TokenRecord.refresh_expire_at,
        )
        .execution_options(synchronize_session=False)
    )
    return [DeactivatedPair(*row) for row in db.execute(stmt).all()]
