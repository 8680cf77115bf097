"""
CLI entrypoint for clearing expired password-reset tokens. Run from cron, e.g.:

  python -m backoffice.cleanup

Or every 10 minutes: */10 * * * * cd /path/to/backoffice && .venv/bin/python -m backoffice.cleanup
"""

import logging
import sys

from backoffice.core.database import SessionLocal
from backoffice.services.retention import purge_expired_reset_tokens

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Clear reset tokens that expired without being used."""
    db = SessionLocal()
    try:
        cleared = purge_expired_reset_tokens(db)
        logger.info("Cleanup completed: tokens_cleared=%s", cleared)
        return 0
    except Exception as e:
        logger.exception("Cleanup job failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
