from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oauthgate.celery_app import celery_app
from oauthgate.core.clock import now_utc
from oauthgate.core.database import SessionLocal
from oauthgate.services.request_tokens import purge_expired_request_tokens
from oauthgate.services.sessions import purge_expired_sessions


logger = logging.getLogger(__name__)


def _with_db_session() -> Session:
    return SessionLocal()


def sweep_expired(db: Session) -> dict[str, int | None]:
    """
    Best-effort bulk delete of expired request tokens and sessions.

    Each purge runs on its own; a failure in one is logged and reported as
    None without skipping the other.
    """
    now = now_utc()
    counts: dict[str, int | None] = {}

    for name, purge in (
        ("request_tokens", purge_expired_request_tokens),
        ("sessions", purge_expired_sessions),
    ):
        logger.info("Clearing expired %s...", name)
        try:
            counts[name] = purge(db, now)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to delete expired %s", name)
            counts[name] = None

    logger.info(
        "Expiry sweep done: request_tokens=%s sessions=%s",
        counts["request_tokens"],
        counts["sessions"],
    )
    return counts


@celery_app.task(name="maintenance.purge_expired")
def purge_expired() -> dict[str, int | None]:
    db = _with_db_session()
    try:
        return sweep_expired(db)
    finally:
        db.close()
