"""SQLAlchemy ORM models."""

from backoffice.models.base import Base
from backoffice.models.user import Role, User

__all__ = ["Base", "Role", "User"]
