"""User model."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from authledger.database import Base, utcnow
from authledger.roles import ROLE_IDS, Role, role_from_id


def normalize(value: str) -> str:
    """Lower-cased form used for case-insensitive uniqueness and lookup."""
    return value.strip().lower()


class User(Base):
    """User account."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    login = Column(String(50), nullable=False)
    login_normalized = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False)
    email_normalized = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    age = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    user_roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")

    @property
    def roles(self) -> list[Role]:
        return sorted(user_role.role for user_role in self.user_roles)


class UserRole(Base):
    """Role assignment; one row per (user, role), keyed by the stable role id."""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uq_user_roles_user_role"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(String(36), nullable=False)
    granted_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="user_roles")

    @classmethod
    def for_role(cls, role: Role, **kwargs) -> "UserRole":
        return cls(role_id=ROLE_IDS[role], **kwargs)

    @property
    def role(self) -> Role:
        return role_from_id(self.role_id)
