"""User account operations."""
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from authledger.database import atomic
from authledger.errors import (
    InvalidCredentialError,
    UserAlreadyHasRole,
    UserAlreadyRegistered,
    UserHasNoRole,
    UserNotFound,
)
from authledger.logging import get_logger
from authledger.models.user import User, UserRole, normalize
from authledger.roles import DEFAULT_ROLE, ROLE_IDS, Role
from authledger.services.passwords import hash_password, verify_password
from authledger.services.token_service import TokenService

logger = get_logger(__name__)


@dataclass(frozen=True)
class Registration:
    login: str
    email: str
    password: str
    first_name: str = ""
    last_name: str = ""
    age: int = 0


class UserService:
    """Registration, profile and role management.

    Role changes revoke the user's active tokens in the same transaction so
    that no refresh token can mint an access token with the old roles.
    """

    def __init__(self, token_service: TokenService) -> None:
        self.token_service = token_service

    def register(self, db: Session, registration: Registration, roles: tuple[Role, ...] = (DEFAULT_ROLE,)) -> User:
        login_normalized = normalize(registration.login)
        email_normalized = normalize(registration.email)
        try:
            with atomic(db):
                exists = db.query(User.id).filter(
                    (User.login_normalized == login_normalized)
                    | (User.email_normalized == email_normalized)
                ).first()
                if exists:
                    raise UserAlreadyRegistered()

                user = User(
                    login=registration.login,
                    login_normalized=login_normalized,
                    email=registration.email,
                    email_normalized=email_normalized,
                    password_hash=hash_password(registration.password),
                    first_name=registration.first_name,
                    last_name=registration.last_name,
                    age=registration.age,
                )
                user.user_roles = [UserRole.for_role(role) for role in roles]
                db.add(user)
        except IntegrityError:
            # Lost a race with a concurrent registration
            raise UserAlreadyRegistered() from None

        db.refresh(user)
        logger.info("user_registered", user_id=user.id)
        return user

    def get(self, db: Session, user_id: str) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise UserNotFound()
        return user

    def get_by_login(self, db: Session, login: str) -> User:
        user = db.query(User).filter(User.login_normalized == normalize(login)).first()
        if user is None:
            raise UserNotFound()
        return user

    def list_users(self, db: Session) -> list[User]:
        return (
            db.query(User)
            .options(selectinload(User.user_roles))
            .order_by(User.login_normalized)
            .all()
        )

    def update_names(self, db: Session, user_id: str, first_name: str, last_name: str) -> User:
        with atomic(db):
            user = self.get(db, user_id)
            user.first_name = first_name
            user.last_name = last_name
        return user

    def delete(self, db: Session, login: str) -> None:
        with atomic(db):
            user = self.get_by_login(db, login)
            user_id = user.id
            # Outstanding tokens must not outlive the account; ledger rows stay
            revoked = self.token_service.revoke_user_tokens(db, user_id)
            db.delete(user)
        logger.info("user_deleted", user_id=user_id, revoked_pairs=revoked)

    def change_password(self, db: Session, login: str, current_password: str, new_password: str) -> None:
        with atomic(db):
            user = self.get_by_login(db, login)
            self._replace_password(user, current_password, new_password)
            user_id = user.id
        logger.info("password_changed", user_id=user_id)

    def change_own_password(self, db: Session, user_id: str, current_password: str, new_password: str) -> None:
        """Change the password of the authenticated caller."""
        with atomic(db):
            self._replace_password(self.get(db, user_id), current_password, new_password)
        logger.info("password_changed", user_id=user_id)

    @staticmethod
    def _replace_password(user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentialError("Current password does not match")
        user.password_hash = hash_password(new_password)

    def grant_role(self, db: Session, user_id: str, role: Role) -> None:
        with atomic(db):
            self.get(db, user_id)
            existing = db.query(UserRole).filter(UserRole.user_id == user_id, UserRole.role_id == ROLE_IDS[role]).first()
            if existing is not None:
                raise UserAlreadyHasRole()
            db.add(UserRole.for_role(role, user_id=user_id))
            db.flush()
            revoked = self.token_service.revoke_user_tokens(db, user_id)
        logger.info("role_granted", user_id=user_id, role=role.claim, revoked_pairs=revoked)

    def remove_role(self, db: Session, user_id: str, role: Role) -> None:
        with atomic(db):
            self.get(db, user_id)
            existing = db.query(UserRole).filter(UserRole.user_id == user_id, UserRole.role_id == ROLE_IDS[role]).first()
            if existing is None:
                raise UserHasNoRole()
            db.delete(existing)
            db.flush()
            revoked = self.token_service.revoke_user_tokens(db, user_id)
        logger.info("role_removed", user_id=user_id, role=role.claim, revoked_pairs=revoked)

    def bootstrap_admin(self, db: Session, login: str, email: str, password: str) -> User:
        """Create the administrator account unless the login is already taken."""
        existing = db.query(User).filter(User.login_normalized == normalize(login)).first()
        if existing is not None:
            return existing
        user = self.register(db, Registration(login=login, email=email, password=password), roles=(Role.ADMIN,))
        logger.info("admin_bootstrapped", user_id=user.id)
        return user
