# app/services/allocation_service.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.config import get_settings
from app.core.errors import (
    InvalidArgumentError,
    InvalidStateError,
    NegotiationError,
    NotFoundError,
)
from app.db.guards import commit_or_raise, flush_or_raise
from app.models.bid import Bid
from app.models.enums import (
    BidStatus,
    EntityType,
    NotificationType,
    OfferAction,
    RequirementStatus,
)
from app.policies.offer_policies import enforce_requirement_owner
from app.services.events_service import NegotiationEvents
from app.services.requirement_gateway import RequirementGateway, SqlRequirementGateway

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
WHOLE_UNIT = Decimal("1")


@dataclass
class AllocationLine:
    bid_id: uuid.UUID
    bidder_id: str
    percentage: Decimal
    quantity: Decimal


@dataclass
class AllocationResult:
    requirement_id: uuid.UUID
    total_allocated: Decimal
    winners: List[AllocationLine] = field(default_factory=list)
    losers: List[uuid.UUID] = field(default_factory=list)


def split_quantity(base: Decimal, percentage: Decimal) -> Decimal:
    """
    Share of `base` for `percentage`, rounded half-up to whole units.
    """
    return (base * percentage / HUNDRED).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


class BidAllocationService:
    """
    Percentage-based award of a requirement across its active bids.
    Winners, losers, the quantity decrement and closing the requirement
    commit together or not at all.
    """

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
        self.settings = get_settings()

    def _validate_percentages(self, allocation: Mapping[uuid.UUID, Decimal]) -> None:
        if not allocation:
            raise InvalidArgumentError("Allocation map cannot be empty.")
        negative = [str(bid_id) for bid_id, pct in allocation.items() if pct < 0]
        if negative:
            raise InvalidArgumentError(f"Negative allocation percentages: {', '.join(negative)}.")

        total = sum(allocation.values(), Decimal("0"))
        if abs(total - HUNDRED) > self.settings.allocation_tolerance:
            raise InvalidArgumentError(f"Allocation percentages must sum to 100 (got {total}).")

    def allocate(
        self,
        db: Session,
        *,
        requirement_id: uuid.UUID,
        actor_id: str,
        allocation: Mapping[uuid.UUID, Decimal],
        quantity_overrides: Optional[Mapping[uuid.UUID, Decimal]] = None,
    ) -> AllocationResult:
        overrides: Dict[uuid.UUID, Decimal] = dict(quantity_overrides or {})
        now = self.clock()

        req = self.requirements.get_or_404(db, requirement_id, for_update=True)
        enforce_requirement_owner(req, actor_id)
        if req.status != RequirementStatus.OPEN.value:
            raise InvalidStateError("Requirement is not open for allocation.")

        self._validate_percentages(allocation)

        bids = {
            b.id: b
            for b in db.execute(
                select(Bid)
                .where(Bid.requirement_id == req.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .all()
        }

        unknown = [str(bid_id) for bid_id in allocation if bid_id not in bids]
        if unknown:
            raise NotFoundError(f"Bids not found on this requirement: {', '.join(unknown)}.")
        inactive = [str(bid_id) for bid_id in allocation if bids[bid_id].status != BidStatus.ACTIVE.value]
        if inactive:
            raise InvalidStateError(f"Only active bids can be allocated: {', '.join(inactive)}.")

        for bid_id, qty in overrides.items():
            if allocation.get(bid_id, Decimal("0")) <= 0:
                raise InvalidArgumentError(f"Quantity override given for unallocated bid {bid_id}.")
            if qty <= 0:
                raise InvalidArgumentError(f"Quantity override for bid {bid_id} must be positive.")

        base = req.available_quantity
        result = AllocationResult(requirement_id=req.id, total_allocated=Decimal("0"))

        for bid_id, pct in allocation.items():
            if pct <= 0:
                continue
            qty = overrides.get(bid_id, split_quantity(base, pct))
            if qty <= 0:
                raise InvalidArgumentError(f"Allocation for bid {bid_id} rounds to zero units.")
            result.winners.append(
                AllocationLine(bid_id=bid_id, bidder_id=bids[bid_id].bidder_id, percentage=pct, quantity=qty)
            )
            result.total_allocated += qty

        if result.total_allocated > base:
            raise InvalidArgumentError(
                f"Allocated total {result.total_allocated} exceeds available quantity {base}."
            )

        try:
            for line in result.winners:
                bid = bids[line.bid_id]
                if bid.original_price is None:
                    bid.original_price = bid.price
                if bid.original_quantity is None:
                    bid.original_quantity = bid.quantity
                bid.quantity = line.quantity
                bid.allocated_quantity = line.quantity
                bid.allocated_percentage = line.percentage
                bid.status = BidStatus.WON.value
                bid.updated_at = now

            winner_ids = {line.bid_id for line in result.winners}
            for bid in bids.values():
                if bid.id in winner_ids or bid.status != BidStatus.ACTIVE.value:
                    continue
                bid.status = BidStatus.LOST.value
                bid.allocated_percentage = Decimal("0")
                bid.updated_at = now
                result.losers.append(bid.id)

            self.requirements.decrement_available(db, req.id, result.total_allocated)
            self.requirements.close(db, req.id)
            flush_or_raise(db)
        except NegotiationError:
            db.rollback()
            raise

        for line in result.winners:
            self.events.record_entity(
                db,
                entity_type=EntityType.BID,
                entity_id=line.bid_id,
                action=OfferAction.WON,
                performed_by=actor_id,
                notes=f"allocated {line.percentage}% ({line.quantity} units)",
            )
            self.events.notify(
                db,
                entity_type=EntityType.BID,
                entity_id=line.bid_id,
                recipient_id=line.bidder_id,
                notification_type=NotificationType.BID_WON,
            )
        for bid_id in result.losers:
            self.events.record_entity(
                db,
                entity_type=EntityType.BID,
                entity_id=bid_id,
                action=OfferAction.LOST,
                performed_by=actor_id,
                notes="not allocated",
            )
            self.events.notify(
                db,
                entity_type=EntityType.BID,
                entity_id=bid_id,
                recipient_id=bids[bid_id].bidder_id,
                notification_type=NotificationType.BID_LOST,
            )
        commit_or_raise(db)

        logger.info(
            "bids allocated",
            extra={
                "requirement_id": str(req.id),
                "winners": len(result.winners),
                "losers": len(result.losers),
                "total_allocated": str(result.total_allocated),
            },
        )
        return result
