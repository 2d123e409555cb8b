# app/services/offers_service.py
from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from app.core.clock import Clock, is_past, utcnow
from app.core.config import get_settings
from app.core.errors import (
    ConflictError,
    ExpiredError,
    InvalidArgumentError,
    InvalidStateError,
    NegotiationError,
)
from app.db.guards import commit_or_raise, flush_or_raise
from app.models.enums import (
    NotificationType,
    OfferAction,
    OfferPriority,
    OfferStatus,
    RequirementStatus,
)
from app.models.offer import Offer
from app.models.offer_history import OfferHistory
from app.models.requirement import Requirement
from app.policies.offer_policies import (
    enforce_not_author,
    enforce_not_owner,
    enforce_party,
    enforce_proposer,
)
from app.services.events_service import SYSTEM_ACTOR, NegotiationEvents
from app.services.offer_state_machine import OfferTransition, next_status
from app.services.offer_store import OfferFilters, OfferStore
from app.services.requirement_gateway import RequirementGateway, SqlRequirementGateway

logger = logging.getLogger(__name__)

_ACTION_FOR = {
    OfferStatus.ACCEPTED: OfferAction.ACCEPTED,
    OfferStatus.REJECTED: OfferAction.REJECTED,
    OfferStatus.WITHDRAWN: OfferAction.WITHDRAWN,
    OfferStatus.EXPIRED: OfferAction.EXPIRED,
}

_NOTIFICATION_FOR = {
    OfferStatus.ACCEPTED: NotificationType.OFFER_ACCEPTED,
    OfferStatus.REJECTED: NotificationType.OFFER_REJECTED,
    OfferStatus.WITHDRAWN: NotificationType.OFFER_WITHDRAWN,
    OfferStatus.EXPIRED: NotificationType.OFFER_EXPIRED,
}


def expire_on_touch(
    db: Session,
    offer: Offer,
    *,
    now,
    actor_id: str,
    events: NegotiationEvents,
) -> None:
    """
    If a PENDING negotiable offer is past its deadline, force it to EXPIRED,
    commit the correction and raise ExpiredError. Otherwise a no-op.
    """
    if offer.offer_status != OfferStatus.PENDING.value:
        return
    if not offer.is_negotiable or not is_past(offer.offer_expiry_date, now):
        return

    offer.offer_status = next_status(offer.offer_status, OfferTransition.EXPIRE).value
    offer.status_changed_at = now
    flush_or_raise(db)

    events.record(db, offer, OfferAction.EXPIRED, performed_by=SYSTEM_ACTOR, notes="expired on access")
    events.notify_offer(
        db,
        offer,
        recipient_id=offer.counter_party_of(actor_id),
        notification_type=NotificationType.OFFER_EXPIRED,
    )
    db.commit()
    logger.info("offer expired on access", extra={"offer_id": str(offer.id)})
    raise ExpiredError("Negotiation window has closed; the offer has expired.")


class OfferService:
    """
    Lifecycle of a single offer: create, party transitions, detail edits,
    soft delete, and the read side used by the API.
    """

    def __init__(
        self,
        *,
        clock: Optional[Clock] = None,
        requirements: Optional[RequirementGateway] = None,
        store: Optional[OfferStore] = None,
        events: Optional[NegotiationEvents] = None,
    ):
        self.clock = clock or utcnow
        self.requirements = requirements or SqlRequirementGateway()
        self.store = store or OfferStore()
        self.events = events or NegotiationEvents()
        self.settings = get_settings()

    # ---------------------------
    # HELPERS
    # ---------------------------

    def _requirement(self, db: Session, requirement_id: uuid.UUID, *, for_update: bool = False) -> Requirement:
        return self.requirements.get_or_404(db, requirement_id, for_update=for_update)

    def _validate_quantity(self, quantity: Decimal, available: Decimal) -> None:
        if quantity <= 0:
            raise InvalidArgumentError("Offered quantity must be greater than zero.")
        if quantity > available:
            raise InvalidArgumentError(
                f"Offered quantity {quantity} exceeds available quantity {available}."
            )

    # ---------------------------
    # CREATE
    # ---------------------------

    def create_offer(
        self,
        db: Session,
        *,
        requirement_id: uuid.UUID,
        proposer_id: str,
        quantity: Decimal,
        price: Optional[Decimal] = None,
        message: Optional[str] = None,
        delivery_terms: Optional[str] = None,
        payment_terms: Optional[str] = None,
        priority: OfferPriority = OfferPriority.MEDIUM,
    ) -> Offer:
        """
        Rules:
        - requirement must exist and be OPEN
        - the owner cannot offer on their own requirement
        - one live (non-deleted) offer per proposer and requirement
        - 0 < quantity <= available quantity
        - negotiable: price >= minimum; non-negotiable: price defaults to the unit price
        """
        now = self.clock()
        req = self._requirement(db, requirement_id)

        if req.status != RequirementStatus.OPEN.value:
            raise InvalidStateError("Requirement is not open for offers.")

        enforce_not_owner(req, proposer_id)

        if self.store.find_live_root(db, requirement_id=req.id, offer_user_id=proposer_id):
            raise ConflictError("You already have an offer on this requirement.")

        self._validate_quantity(quantity, req.available_quantity)

        if req.is_negotiable:
            if price is None or price < self.settings.min_negotiable_price:
                raise InvalidArgumentError(
                    f"Offered price must be at least {self.settings.min_negotiable_price}."
                )
            expiry = (
                now + timedelta(hours=req.negotiation_window)
                if req.negotiation_window
                else None
            )
        else:
            if price is None:
                price = req.unit_price
            if price is None or price < 0:
                raise InvalidArgumentError("Offered price is required for this requirement.")
            expiry = None

        offer = Offer(
            requirement_id=req.id,
            requirement_owner_id=req.owner_id,
            offer_user_id=proposer_id,
            author_id=proposer_id,
            offered_unit_price=price,
            offered_quantity=quantity,
            negotiability=req.negotiability,
            negotiation_window=req.negotiation_window,
            is_counter_offer=False,
            counteroffer_count=0,
            offer_status=OfferStatus.PENDING.value,
            offer_expiry_date=expiry,
            status_changed_at=now,
            offer_message=message,
            delivery_terms=delivery_terms,
            payment_terms=payment_terms,
            offer_priority=OfferPriority(priority).value,
            created_at=now,
            updated_at=now,
        )
        db.add(offer)
        flush_or_raise(db)

        self.events.record(db, offer, OfferAction.CREATED, performed_by=proposer_id)
        self.events.notify_offer(
            db,
            offer,
            recipient_id=req.owner_id,
            notification_type=NotificationType.NEW_OFFER,
        )
        commit_or_raise(db)
        db.refresh(offer)

        logger.info(
            "offer created",
            extra={"offer_id": str(offer.id), "requirement_id": str(req.id)},
        )
        return offer

    # ---------------------------
    # TRANSITIONS
    # ---------------------------

    def transition_offer(
        self,
        db: Session,
        *,
        offer_id: uuid.UUID,
        actor_id: str,
        transition: OfferTransition,
        notes: Optional[str] = None,
    ) -> Offer:
        """
        Party action on a root offer.

        Counter-offers and their thread edges go through CounterOfferService.
        """
        if transition in (OfferTransition.COUNTER, OfferTransition.REOPEN):
            raise InvalidArgumentError("Use the counter-offer operations for this action.")

        now = self.clock()
        offer = self.store.get_or_404(db, offer_id, for_update=True)
        if offer.is_counter_offer:
            raise InvalidStateError("Counter-offers are resolved through their own operations.")

        try:
            expire_on_touch(db, offer, now=now, actor_id=actor_id, events=self.events)

            enforce_party(offer, actor_id)
            if transition in (OfferTransition.ACCEPT, OfferTransition.REJECT):
                enforce_not_author(offer, actor_id)
            elif transition == OfferTransition.WITHDRAW:
                enforce_proposer(offer, actor_id)

            target = next_status(offer.offer_status, transition)

            if target == OfferStatus.ACCEPTED:
                req = self._requirement(db, offer.requirement_id, for_update=True)
                if req.status != RequirementStatus.OPEN.value:
                    raise InvalidStateError("Requirement is no longer open.")
                self._validate_quantity(offer.offered_quantity, req.available_quantity)
                self.requirements.decrement_available(db, req.id, offer.offered_quantity)

            offer.offer_status = target.value
            offer.status_changed_at = now
            flush_or_raise(db)
        except ExpiredError:
            raise
        except NegotiationError:
            db.rollback()
            raise

        self.events.record(db, offer, _ACTION_FOR[target], performed_by=actor_id, notes=notes)
        self.events.notify_offer(
            db,
            offer,
            recipient_id=offer.counter_party_of(actor_id),
            notification_type=_NOTIFICATION_FOR[target],
        )
        commit_or_raise(db)
        db.refresh(offer)

        logger.info(
            "offer transitioned",
            extra={"offer_id": str(offer.id), "status": offer.offer_status, "actor_id": actor_id},
        )
        return offer

    # ---------------------------
    # EDIT / DELETE
    # ---------------------------

    def update_offer_details(
        self,
        db: Session,
        *,
        offer_id: uuid.UUID,
        actor_id: str,
        quantity: Optional[Decimal] = None,
        message: Optional[str] = None,
        delivery_terms: Optional[str] = None,
        payment_terms: Optional[str] = None,
        priority: Optional[OfferPriority] = None,
    ) -> Offer:
        now = self.clock()
        offer = self.store.get_or_404(db, offer_id, for_update=True)
        if offer.is_counter_offer:
            raise InvalidStateError("Counter-offers are edited through their own operations.")

        enforce_proposer(offer, actor_id)
        expire_on_touch(db, offer, now=now, actor_id=actor_id, events=self.events)

        if offer.offer_status != OfferStatus.PENDING.value:
            raise InvalidStateError("Only pending offers can be edited.")

        changed = []
        if quantity is not None:
            req = self._requirement(db, offer.requirement_id)
            self._validate_quantity(quantity, req.available_quantity)
            offer.offered_quantity = quantity
            changed.append("quantity")
        if message is not None:
            offer.offer_message = message
            changed.append("message")
        if delivery_terms is not None:
            offer.delivery_terms = delivery_terms
            changed.append("delivery_terms")
        if payment_terms is not None:
            offer.payment_terms = payment_terms
            changed.append("payment_terms")
        if priority is not None:
            offer.offer_priority = OfferPriority(priority).value
            changed.append("priority")

        if not changed:
            return offer

        flush_or_raise(db)
        self.events.record(
            db, offer, OfferAction.UPDATED, performed_by=actor_id, notes=", ".join(changed)
        )
        self.events.notify_offer(
            db,
            offer,
            recipient_id=offer.requirement_owner_id,
            notification_type=NotificationType.OFFER_UPDATED,
        )
        commit_or_raise(db)
        db.refresh(offer)
        return offer

    def delete_offer(self, db: Session, *, offer_id: uuid.UUID, actor_id: str) -> Offer:
        """
        Soft delete by the proposer. The root keeps its status; pending
        counter-offers of its thread are WITHDRAWN and deleted with it: a thread
        without a live root can no longer be resolved.
        """
        now = self.clock()
        offer = self.store.get_or_404(db, offer_id, for_update=True)
        if offer.is_counter_offer:
            raise InvalidStateError("Counter-offers are deleted through their own operations.")

        enforce_proposer(offer, actor_id)

        withdrawn = self.store.pending_links(db, offer.id)
        for link in withdrawn:
            link.offer_status = next_status(link.offer_status, OfferTransition.WITHDRAW).value
            link.status_changed_at = now
            link.deleted_at = now

        offer.deleted_at = now
        flush_or_raise(db)

        self.events.record(db, offer, OfferAction.WITHDRAWN, performed_by=actor_id, notes="deleted")
        for link in withdrawn:
            self.events.record(
                db, link, OfferAction.WITHDRAWN, performed_by=actor_id, notes="offer deleted"
            )
            self.events.notify_offer(
                db,
                link,
                recipient_id=link.counter_party_of(actor_id),
                notification_type=NotificationType.OFFER_WITHDRAWN,
            )
        commit_or_raise(db)
        db.refresh(offer)

        logger.info("offer deleted", extra={"offer_id": str(offer.id), "actor_id": actor_id})
        return offer

    # ---------------------------
    # READS
    # ---------------------------

    def get_offer(self, db: Session, *, offer_id: uuid.UUID, actor_id: str) -> Offer:
        offer = self.store.get_or_404(db, offer_id)
        enforce_party(offer, actor_id)
        return offer

    def list_offers(
        self,
        db: Session,
        *,
        actor_id: str,
        filters: OfferFilters,
        page: int = 1,
        limit: Optional[int] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[Sequence[Offer], int]:
        limit = min(limit or self.settings.default_page_size, self.settings.max_page_size)
        return self.store.list_offers(
            db,
            party_id=actor_id,
            filters=filters,
            page=max(page, 1),
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )

    def get_thread(self, db: Session, *, offer_id: uuid.UUID, actor_id: str) -> Tuple[Offer, list]:
        offer = self.store.get_or_404(db, offer_id)
        enforce_party(offer, actor_id)
        root = self.store.get_root(db, offer)
        return root, self.store.thread_links(db, root.id)

    def list_history(
        self,
        db: Session,
        *,
        offer_id: uuid.UUID,
        actor_id: str,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[Sequence[OfferHistory], int]:
        offer = self.store.get_or_404(db, offer_id)
        enforce_party(offer, actor_id)
        limit = min(limit or self.settings.default_page_size, self.settings.max_page_size)
        return self.store.list_history(db, offer=offer, page=max(page, 1), limit=limit)
