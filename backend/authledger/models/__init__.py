"""SQLAlchemy models package."""
from authledger.models.user import User, UserRole
from authledger.models.auth import RecoveryToken, RevokedToken, TokenRecord

__all__ = [
    "User",
    "UserRole",
    "TokenRecord",
    "RevokedToken",
    "RecoveryToken",
]
