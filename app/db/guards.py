# app/db/guards.py
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConflictError, InvalidStateError

logger = logging.getLogger(__name__)


def flush_or_raise(db: Session) -> None:
    """
    Flush pending writes, mapping optimistic-lock and uniqueness failures
    to domain errors. The session is rolled back before raising.
    """
    try:
        db.flush()
    except StaleDataError:
        db.rollback()
        logger.info("stale write rejected")
        raise InvalidStateError("Record was modified by a concurrent request; reload and retry.")
    except IntegrityError as e:
        db.rollback()
        logger.info("integrity violation", extra={"error": str(e.orig)})
        raise ConflictError("Write conflicts with an existing record.")


def commit_or_raise(db: Session) -> None:
    flush_or_raise(db)
    db.commit()
