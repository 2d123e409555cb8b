# app/services/bids_service.py
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, desc, exists
from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.errors import ConflictError, InvalidArgumentError, InvalidStateError
from app.db.guards import commit_or_raise, flush_or_raise
from app.models.bid import Bid
from app.models.enums import (
    BidStatus,
    EntityType,
    NotificationType,
    OfferAction,
    PostingType,
    RequirementStatus,
)
from app.policies.offer_policies import enforce_not_owner
from app.services.events_service import NegotiationEvents
from app.services.requirement_gateway import RequirementGateway, SqlRequirementGateway

logger = logging.getLogger(__name__)


class BidService:
    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        requirements: Optional[RequirementGateway] = None,
        events: Optional[NegotiationEvents] = None,
    ):
        self.clock = clock or utcnow
        self.requirements = requirements or SqlRequirementGateway()
        self.events = events or NegotiationEvents()

    # ---------------------------
    # READS
    # ---------------------------

    def has_winner(self, db: Session, requirement_id: uuid.UUID) -> bool:
        return bool(
            db.execute(
                select(
                    exists().where(
                        Bid.requirement_id == requirement_id,
                        Bid.status == BidStatus.WON.value,
                    )
                )
            ).scalar()
        )

    def active_bid_of(self, db: Session, requirement_id: uuid.UUID, bidder_id: str) -> Optional[Bid]:
        return (
            db.execute(
                select(Bid).where(
                    Bid.requirement_id == requirement_id,
                    Bid.bidder_id == bidder_id,
                    Bid.status == BidStatus.ACTIVE.value,
                )
            )
            .scalars()
            .first()
        )

    def list_bids(self, db: Session, *, requirement_id: uuid.UUID, actor_id: str) -> List[Bid]:
        """
        The requirement owner sees every bid; a bidder sees only their own.
        """
        req = self.requirements.get_or_404(db, requirement_id)
        stmt = select(Bid).where(Bid.requirement_id == req.id)
        if req.owner_id != actor_id:
            stmt = stmt.where(Bid.bidder_id == actor_id)
        return list(db.execute(stmt.order_by(desc(Bid.price), Bid.created_at)).scalars().all())

    # ---------------------------
    # MUTATIONS
    # ---------------------------

    def create_bid(
        self,
        db: Session,
        *,
        requirement_id: uuid.UUID,
        bidder_id: str,
        price: Decimal,
        quantity: Decimal,
    ) -> Bid:
        """
        Rules:
        - requirement must be OPEN and posted for BIDDING
        - the owner cannot bid
        - no new bids once any bid on the requirement has WON
        - one ACTIVE bid per bidder
        - 0 < quantity <= available quantity, price >= 0
        """
        # serialises with allocate(), which holds the same row lock
        req = self.requirements.get_or_404(db, requirement_id, for_update=True)

        if req.status != RequirementStatus.OPEN.value:
            raise InvalidStateError("Requirement is not open for bids.")
        if req.posting_type != PostingType.BIDDING.value:
            raise InvalidStateError("Requirement does not accept bids.")

        enforce_not_owner(req, bidder_id)

        if self.has_winner(db, req.id):
            raise InvalidStateError("Bidding has been closed for this requirement.")
        if self.active_bid_of(db, req.id, bidder_id):
            raise ConflictError("You already have an active bid on this requirement.")

        if quantity <= 0 or quantity > req.available_quantity:
            raise InvalidArgumentError(
                f"Bid quantity must be greater than zero and at most {req.available_quantity}."
            )
        if price < 0:
            raise InvalidArgumentError("Bid price cannot be negative.")

        now = self.clock()
        bid = Bid(
            requirement_id=req.id,
            bidder_id=bidder_id,
            price=price,
            quantity=quantity,
            status=BidStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        db.add(bid)
        flush_or_raise(db)

        self.events.record_entity(
            db,
            entity_type=EntityType.BID,
            entity_id=bid.id,
            action=OfferAction.CREATED,
            performed_by=bidder_id,
        )
        self.events.notify(
            db,
            entity_type=EntityType.BID,
            entity_id=bid.id,
            recipient_id=req.owner_id,
            notification_type=NotificationType.NEW_BID,
        )
        commit_or_raise(db)
        db.refresh(bid)

        logger.info("bid created", extra={"bid_id": str(bid.id), "requirement_id": str(req.id)})
        return bid
