# app/services/expiry_sweeper.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.models.enums import OfferAction, OfferStatus
from app.models.offer import Offer
from app.services.events_service import SYSTEM_ACTOR, NegotiationEvents
from app.services.offer_store import OfferStore

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    scanned: int = 0
    expired: int = 0
    failed: int = 0


class ExpirySweeper:
    """
    Moves PENDING offers and counter-offer links past their deadline to
    EXPIRED. Uses the same deadline predicate as the on-access check.
    """

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        store: Optional[OfferStore] = None,
        events: Optional[NegotiationEvents] = None,
        batch_size: int = 500,
    ):
        self.clock = clock or utcnow
        self.store = store or OfferStore()
        self.events = events or NegotiationEvents()
        self.batch_size = batch_size

    def _expire_one(self, db: Session, offer_id, now) -> bool:
        # still PENDING: a request may have resolved it since the scan
        result = db.execute(
            update(Offer)
            .where(
                Offer.id == offer_id,
                Offer.offer_status == OfferStatus.PENDING.value,
                Offer.deleted_at.is_(None),
            )
            .values(
                offer_status=OfferStatus.EXPIRED.value,
                status_changed_at=now,
                updated_at=now,
                version_id=Offer.version_id + 1,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def sweep(self, db: Session) -> SweepResult:
        now = self.clock()
        result = SweepResult()

        candidates = self.store.expirable_ids(db, now=now, limit=self.batch_size)
        result.scanned = len(candidates)

        for offer_id in candidates:
            try:
                with db.begin_nested():
                    expired = self._expire_one(db, offer_id, now)
            except SQLAlchemyError:
                result.failed += 1
                logger.exception("expiry sweep failed for offer", extra={"offer_id": str(offer_id)})
                continue

            if not expired:
                continue
            result.expired += 1

            offer = self.store.get(db, offer_id)
            if offer is not None:
                self.events.record(
                    db, offer, OfferAction.EXPIRED, performed_by=SYSTEM_ACTOR, notes="expiry sweep"
                )

        db.commit()

        if result.expired or result.failed:
            logger.info(
                "expiry sweep finished",
                extra={"scanned": result.scanned, "expired": result.expired, "failed": result.failed},
            )
        return result
