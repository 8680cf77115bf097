"""ORM model for back-office accounts (auth, RBAC and password reset)."""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func

from backoffice.models.base import Base


class Role(str, enum.Enum):
    """Closed set of account roles; the value doubles as the realtime room name."""

    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class User(Base):
    """
    Account for JWT authentication and role-based access control.

    password_reset_token holds sha256(raw token), never the raw token itself.
    Both reset columns are set together and cleared together.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('USER', 'MODERATOR', 'ADMIN')", name="ck_users_role"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default=Role.USER.value)
    password_reset_token = Column(String(64), nullable=True, index=True)
    password_reset_expires = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def clear_password_reset(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None
