"""Credential & token service: registration, login, refresh, password change and reset.

All methods are synchronous (SQLAlchemy session, bcrypt, SMTP); the HTTP layer
runs them in the threadpool. Failures are raised as backoffice.core.errors types.
"""

from __future__ import annotations

import logging
import math
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Protocol

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backoffice.core.errors import (
    ConflictError,
    InternalError,
    InvalidCredentialsError,
    InvalidResetTokenError,
    InvalidTokenError,
    NotFoundError,
    ValidationFailedError,
)
from backoffice.core.security import (
    BCRYPT_ROUNDS,
    NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    create_access_token,
    create_refresh_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
    verify_refresh_token,
)
from backoffice.models.user import Role, User
from backoffice.schemas.auth import TokenPair

if TYPE_CHECKING:
    from backoffice.core.config import Settings

logger = logging.getLogger(__name__)

EMAIL_TAKEN_MESSAGE = "User with this email already exists"
RESET_REQUESTED_MESSAGE = "If this user exists, a password reset email has been sent."
RESET_EMAIL_FAILED_MESSAGE = "Failed to send password reset email."

SORTABLE_FIELDS = ("id", "email", "name", "role", "created_at")
MAX_PAGE_LIMIT = 100


class Mailer(Protocol):
    def send(self, to_email: str, subject: str, text_body: str) -> None: ...


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _validate_new_password(password: str, field: str = "Password") -> None:
    if not password or len(password) < PASSWORD_MIN_LEN:
        raise ValidationFailedError(
            f"{field} must be at least {PASSWORD_MIN_LEN} characters long"
        )
    if len(password) > PASSWORD_MAX_LEN:
        raise ValidationFailedError(
            f"{field} must be at most {PASSWORD_MAX_LEN} characters long"
        )


def parse_role(value: Role | str) -> Role:
    """Accept a Role or a case-insensitive role name."""
    if isinstance(value, Role):
        return value
    try:
        return Role((value or "").strip().upper())
    except ValueError as e:
        allowed = ", ".join(r.value for r in Role)
        raise ValidationFailedError(f"Role must be one of {allowed}") from e


class CredentialService:
    """Owns password hashing, token issuance and the password lifecycle."""

    def __init__(
        self,
        settings: Settings,
        mailer: Mailer,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self._settings = settings
        self._mailer = mailer
        self._bcrypt_rounds = bcrypt_rounds
        self._dummy_hash: str | None = None

    def hash(self, password: str) -> str:
        return hash_password(password, rounds=self._bcrypt_rounds)

    def verify(self, password: str, hashed: str) -> bool:
        return verify_password(password, hashed)

    def issue_tokens(self, account: User) -> TokenPair:
        return TokenPair(
            access_token=create_access_token(account.id, account.role, self._settings),
            refresh_token=create_refresh_token(account.id, self._settings),
        )

    def _burn_verify(self, password: str) -> None:
        # Unknown email still pays for one bcrypt check so timing does not tell.
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("dummy-password-for-timing")
        self.verify(password, self._dummy_hash)

    def _find_by_email(self, db: Session, email: str) -> User | None:
        return db.query(User).filter(User.email == normalize_email(email)).first()

    def get_account(self, db: Session, account_id: int) -> User:
        user = db.get(User, account_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def register(
        self, db: Session, email: str, password: str, name: str
    ) -> tuple[User, TokenPair]:
        """Create a USER account. Existing email (checked or raced) is a ConflictError."""
        email = normalize_email(email)
        name = (name or "").strip()
        if not email or not name:
            raise ValidationFailedError("Email, password, and name are required")
        if len(name) > NAME_MAX_LEN:
            raise ValidationFailedError(f"Name must be at most {NAME_MAX_LEN} characters long")
        _validate_new_password(password)

        if self._find_by_email(db, email) is not None:
            raise ConflictError(EMAIL_TAKEN_MESSAGE)

        user = User(
            email=email,
            name=name,
            password_hash=self.hash(password),
            role=Role.USER.value,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError as e:
            # Lost the race between the existence check and the insert.
            db.rollback()
            raise ConflictError(EMAIL_TAKEN_MESSAGE) from e
        db.refresh(user)
        logger.info("Account registered", extra={"account_id": user.id})
        return user, self.issue_tokens(user)

    def login(self, db: Session, email: str, password: str) -> tuple[User, TokenPair]:
        user = self._find_by_email(db, email)
        if user is None:
            self._burn_verify(password or "")
            raise InvalidCredentialsError()
        if not self.verify(password or "", user.password_hash):
            raise InvalidCredentialsError()
        return user, self.issue_tokens(user)

    def refresh(self, db: Session, refresh_token: str) -> TokenPair:
        """Mint a new pair; the account must still exist (role is re-read from the row)."""
        account_id = verify_refresh_token(refresh_token, self._settings)
        user = db.get(User, account_id)
        if user is None:
            raise InvalidTokenError()
        return self.issue_tokens(user)

    def change_password(
        self, db: Session, account_id: int, current_password: str, new_password: str
    ) -> User:
        if not current_password or not new_password:
            raise ValidationFailedError("Current and new passwords are required")
        _validate_new_password(new_password, field="New password")
        if current_password == new_password:
            raise ValidationFailedError("New password cannot be the same as the old one")

        user = self.get_account(db, account_id)
        if not self.verify(current_password, user.password_hash):
            raise InvalidCredentialsError("Incorrect current password")

        user.password_hash = self.hash(new_password)
        db.commit()
        logger.info("Password changed", extra={"account_id": user.id})
        return user

    def _reset_url(self, raw_token: str) -> str:
        return f"{self._settings.FRONTEND_URL}/reset-password/{raw_token}"

    def request_password_reset(self, db: Session, email: str) -> str:
        """
        Store sha256(token) with an expiry and email the raw token.

        Returns the same message whether or not the account exists. When the email
        cannot be sent the reset fields are cleared again before InternalError.
        """
        user = self._find_by_email(db, email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return RESET_REQUESTED_MESSAGE

        raw_token, token_hash = generate_reset_token()
        expires_minutes = self._settings.PASSWORD_RESET_EXPIRE_MINUTES
        user.password_reset_token = token_hash
        user.password_reset_expires = datetime.now(UTC) + timedelta(minutes=expires_minutes)
        db.commit()

        reset_url = self._reset_url(raw_token)
        message = (
            f"Click this link to reset your password: {reset_url} "
            f"(valid {expires_minutes} min)"
        )
        try:
            self._mailer.send(user.email, "Password Reset Request", message)
        except Exception as e:
            user.clear_password_reset()
            db.commit()
            logger.error(
                "Password reset email failed",
                extra={"account_id": user.id, "reason": str(e)[:500]},
            )
            raise InternalError(RESET_EMAIL_FAILED_MESSAGE) from e

        logger.info("Password reset email sent", extra={"account_id": user.id})
        return RESET_REQUESTED_MESSAGE

    def consume_password_reset(self, db: Session, raw_token: str, new_password: str) -> User:
        """Set a new password from a live reset token; the token is cleared in the same commit."""
        _validate_new_password(new_password)
        if not raw_token:
            raise InvalidResetTokenError()

        now = datetime.now(UTC)
        user = (
            db.query(User)
            .filter(
                User.password_reset_token == hash_reset_token(raw_token),
                User.password_reset_expires > now,
            )
            .first()
        )
        if user is None:
            raise InvalidResetTokenError()

        user.password_hash = self.hash(new_password)
        user.clear_password_reset()
        db.commit()
        logger.info("Password reset completed", extra={"account_id": user.id})
        return user

    def list_accounts(
        self,
        db: Session,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        role: str | None = None,
        sort_by: str = "id",
        order: str = "asc",
    ) -> tuple[list[User], int]:
        """Filter, sort and paginate accounts. Returns (page items, total matching)."""
        if page < 1:
            raise ValidationFailedError("page must be at least 1")
        if limit < 1 or limit > MAX_PAGE_LIMIT:
            raise ValidationFailedError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")

        query = db.query(User)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
        if role:
            query = query.filter(User.role == parse_role(role).value)

        total = query.count()
        column = getattr(User, sort_by if sort_by in SORTABLE_FIELDS else "id")
        ordering = column.desc() if (order or "").lower() == "desc" else column.asc()
        items = (
            query.order_by(ordering, User.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    def update_role(self, db: Session, account_id: int, role: Role | str) -> User:
        new_role = parse_role(role)
        user = self.get_account(db, account_id)
        user.role = new_role.value
        db.commit()
        logger.info("Role updated", extra={"account_id": user.id, "role": user.role})
        return user

    def delete_account(self, db: Session, account_id: int) -> None:
        user = self.get_account(db, account_id)
        db.delete(user)
        db.commit()
        logger.info("Account deleted", extra={"account_id": account_id})


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
