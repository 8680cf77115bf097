"""Password hashing, JWT access/refresh tokens and password-reset token helpers."""

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt

from backoffice.core.errors import InvalidTokenError, TokenConfigurationError
from backoffice.models.user import Role
from backoffice.schemas.auth import Principal

if TYPE_CHECKING:
    from backoffice.core.config import Settings

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

# Min/max lengths for email, name and password validation.
EMAIL_MAX_LEN = 255
NAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

# Raw reset token entropy in bytes (hex-encoded to twice this length).
RESET_TOKEN_BYTES = 32

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def _signing_secret(settings: "Settings") -> str:
    if settings.JWT_SECRET is None:
        raise TokenConfigurationError()
    secret = settings.JWT_SECRET.get_secret_value()
    if not secret.strip():
        raise TokenConfigurationError()
    return secret


def _encode(payload: dict[str, Any], lifetime: timedelta, settings: "Settings") -> str:
    now = datetime.now(UTC)
    claims = {**payload, "iat": now, "exp": now + lifetime}
    return jwt.encode(claims, _signing_secret(settings), algorithm=settings.JWT_ALGORITHM)


def _decode(token: str, expected_type: str, settings: "Settings") -> dict[str, Any]:
    """Decode and check the token type; every failure becomes InvalidTokenError."""
    secret = _signing_secret(settings)
    if not token or not isinstance(token, str):
        raise InvalidTokenError()
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.PyJWTError as e:
        raise InvalidTokenError() from e
    if payload.get("type") != expected_type:
        raise InvalidTokenError()
    return payload


def _account_id_from(payload: dict[str, Any]) -> int:
    sub = payload.get("sub")
    try:
        account_id = int(sub)
    except (TypeError, ValueError) as e:
        raise InvalidTokenError() from e
    if account_id <= 0:
        raise InvalidTokenError()
    return account_id


def create_access_token(account_id: int, role: Role | str, settings: "Settings") -> str:
    """Create a JWT access token with sub (account id), role, type and exp."""
    return _encode(
        {"sub": str(account_id), "role": Role(role).value, "type": TOKEN_TYPE_ACCESS},
        timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
        settings,
    )


def create_refresh_token(account_id: int, settings: "Settings") -> str:
    """Create a longer-lived JWT carrying only the account id."""
    return _encode(
        {"sub": str(account_id), "type": TOKEN_TYPE_REFRESH},
        timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS),
        settings,
    )


def verify_access_token(token: str, settings: "Settings") -> Principal:
    """
    Decode and validate an access token; return the Principal it names.
    Raises InvalidTokenError on bad signature, expiry, wrong type or bad claims.
    """
    payload = _decode(token, TOKEN_TYPE_ACCESS, settings)
    account_id = _account_id_from(payload)
    try:
        role = Role(payload.get("role"))
    except ValueError as e:
        raise InvalidTokenError() from e
    return Principal(account_id=account_id, role=role)


def verify_refresh_token(token: str, settings: "Settings") -> int:
    """Decode a refresh token and return the account id. Raises InvalidTokenError."""
    payload = _decode(token, TOKEN_TYPE_REFRESH, settings)
    return _account_id_from(payload)


def generate_reset_token() -> tuple[str, str]:
    """Return (raw_token, sha256_hex). Only the hash is ever persisted."""
    raw = secrets.token_hex(RESET_TOKEN_BYTES)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()
