# app/tasks/expiry_tasks.py
"""
Background task for the negotiation expiry sweep.
"""
import logging

from app.db.session import SessionLocal
from app.services.expiry_sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


def sweep_expired_offers():
    """
    Expire PENDING offers and counter-offers whose negotiation window has closed.

    Returns: number of offers expired
    """
    db = SessionLocal()
    try:
        result = ExpirySweeper().sweep(db)
        return result.expired

    except Exception:
        db.rollback()
        logger.exception("Error in sweep_expired_offers task")
        return 0

    finally:
        db.close()
