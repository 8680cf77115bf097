"""Data retention: clear password-reset tokens whose expiry has passed."""

import logging
from datetime import UTC, datetime

from sqlalchemy.orm import Session

from backoffice.models import User

logger = logging.getLogger(__name__)


def purge_expired_reset_tokens(session: Session, now: datetime | None = None) -> int:
    """
    Null out password_reset_token/expires on rows whose expiry is at or before now.

    Returns the number of accounts cleared. Idempotent: safe to run repeatedly.
    """
    cutoff = now or datetime.now(UTC)
    cleared = (
        session.query(User)
        .filter(
            User.password_reset_token.isnot(None),
            User.password_reset_expires <= cutoff,
        )
        .update(
            {User.password_reset_token: None, User.password_reset_expires: None},
            synchronize_session=False,
        )
    )
    session.commit()

    if cleared > 0:
        logger.info(
            "Reset token purge: cutoff=%s, tokens_cleared=%s",
            cutoff.isoformat(),
            cleared,
        )
    return cleared
