"""Shared API dependencies."""
from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from authledger.config import get_settings
from authledger.database import get_db
from authledger.errors import ForbiddenError, MissingIdentity
from authledger.roles import Role
from authledger.services.email import SmtpEmailSender
from authledger.services.token_service import TokenService
from authledger.services.token_signer import TokenSigner, VerifiedClaims
from authledger.services.user_service import UserService

__all__ = [
    "get_db",
    "get_token_signer",
    "get_token_service",
    "get_user_service",
    "get_current_claims",
    "get_current_user_id",
    "require_admin",
]


@lru_cache
def get_token_signer() -> TokenSigner:
    """Process-wide signer; secrets rotate in place on this instance."""
    return TokenSigner.from_settings(get_settings())


def get_token_service() -> TokenService:
    return TokenService(get_token_signer(), SmtpEmailSender(get_settings()))


def get_user_service(token_service: TokenService = Depends(get_token_service)) -> UserService:
    return UserService(token_service)


def get_current_claims(
    authorization: str | None = Header(default=None),
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
) -> VerifiedClaims:
    """Verify the bearer access token and check it has not been revoked."""
    return token_service.authenticate(db, authorization)


def get_current_user_id(claims: VerifiedClaims = Depends(get_current_claims)) -> str:
    """Caller's user id from claims already verified by the authorization gate."""
    if not claims.user_id:
        raise MissingIdentity("authenticated request carries no subject claim")
    return claims.user_id


def require_admin(claims: VerifiedClaims = Depends(get_current_claims)) -> VerifiedClaims:
    if Role.ADMIN not in claims.roles:
        raise ForbiddenError()
    return claims
