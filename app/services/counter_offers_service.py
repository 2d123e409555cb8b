# app/services/counter_offers_service.py
from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.config import get_settings
from app.core.errors import (
    InvalidArgumentError,
    InvalidStateError,
    LimitExceededError,
    NegotiationError,
)
from app.db.guards import commit_or_raise, flush_or_raise
from app.models.enums import NotificationType, OfferAction, OfferStatus, RequirementStatus
from app.models.offer import Offer
from app.models.requirement import Requirement
from app.policies.offer_policies import (
    enforce_author,
    enforce_can_counter,
    enforce_not_author,
    enforce_party,
)
from app.services.events_service import NegotiationEvents
from app.services.offer_state_machine import OfferTransition, next_status
from app.services.offer_store import OfferStore
from app.services.offers_service import expire_on_touch
from app.services.requirement_gateway import RequirementGateway, SqlRequirementGateway

logger = logging.getLogger(__name__)


class CounterOfferService:
    """
    Bounded chain of counter-offers hanging off a root offer.

    Every link copies the root's expiry, so a whole thread closes within the
    root's negotiation window. The root carries the live counter count.
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

    def _validate_terms(
        self, req: Requirement, *, price: Optional[Decimal], quantity: Optional[Decimal]
    ) -> None:
        if quantity is not None and not (Decimal("0") < quantity <= req.quantity):
            raise InvalidArgumentError(
                f"Counter quantity must be greater than zero and at most {req.quantity}."
            )
        if price is not None and price < self.settings.min_negotiable_price:
            raise InvalidArgumentError(
                f"Counter price must be at least {self.settings.min_negotiable_price}."
            )

    def _load_link(self, db: Session, counter_offer_id: uuid.UUID) -> Tuple[Offer, Offer]:
        link = self.store.get_counter_offer_or_404(db, counter_offer_id, for_update=True)
        root = self.store.get_root(db, link, for_update=True)
        return link, root

    def _ensure_open(self, db: Session, link: Offer, *, now, actor_id: str) -> None:
        if link.offer_status != OfferStatus.PENDING.value:
            raise InvalidStateError(
                f"Counter-offer is {link.offer_status}; only pending counter-offers can be acted on."
            )
        expire_on_touch(db, link, now=now, actor_id=actor_id, events=self.events)

    def _reject_siblings(self, db: Session, root: Offer, *, keep_id: uuid.UUID, now) -> List[Offer]:
        rejected = []
        for sibling in self.store.pending_links(db, root.id, exclude_id=keep_id):
            sibling.offer_status = next_status(sibling.offer_status, OfferTransition.REJECT).value
            sibling.status_changed_at = now
            rejected.append(sibling)
        return rejected

    # ---------------------------
    # CREATE
    # ---------------------------

    def create_counter_offer(
        self,
        db: Session,
        *,
        offer_id: uuid.UUID,
        actor_id: str,
        price: Decimal,
        quantity: Decimal,
        message: Optional[str] = None,
    ) -> Offer:
        """
        Rules:
        - STANDARD postings: only the requirement owner counters
        - BIDDING postings: either party except the author of the target
        - target must be PENDING and inside the negotiation window
        - 0 < quantity <= requirement quantity
        - the thread holds at most `counter_offer_limit` live links
        """
        now = self.clock()
        target = self.store.get_or_404(db, offer_id, for_update=True)
        root = self.store.get_root(db, target, for_update=True)
        req = self.requirements.get_or_404(db, target.requirement_id)

        enforce_can_counter(req, target, actor_id)

        if not root.is_negotiable:
            raise InvalidStateError("This offer is not negotiable.")
        if target.offer_status != OfferStatus.PENDING.value:
            raise InvalidStateError(
                f"Offer is {target.offer_status}; only pending offers can be countered."
            )
        expire_on_touch(db, target, now=now, actor_id=actor_id, events=self.events)

        self._validate_terms(req, price=price, quantity=quantity)

        if root.counteroffer_count >= self.settings.counter_offer_limit:
            raise LimitExceededError(
                f"Counter-offer limit of {self.settings.counter_offer_limit} reached for this negotiation."
            )

        target.offer_status = next_status(target.offer_status, OfferTransition.COUNTER).value
        target.status_changed_at = now

        link = Offer(
            requirement_id=root.requirement_id,
            requirement_owner_id=root.requirement_owner_id,
            offer_user_id=root.offer_user_id,
            author_id=actor_id,
            offered_unit_price=price,
            offered_quantity=quantity,
            negotiability=root.negotiability,
            negotiation_window=root.negotiation_window,
            is_counter_offer=True,
            parent_offer_id=target.id,
            root_offer_id=root.id,
            counteroffer_number=root.counteroffer_count + 1,
            offer_status=OfferStatus.PENDING.value,
            offer_expiry_date=root.offer_expiry_date,
            status_changed_at=now,
            offer_message=message,
            offer_priority=root.offer_priority,
            created_at=now,
            updated_at=now,
        )
        root.counteroffer_count += 1
        db.add(link)
        flush_or_raise(db)

        self.events.record(
            db, target, OfferAction.COUNTERED, performed_by=actor_id,
            notes=f"counter-offer #{link.counteroffer_number}",
        )
        self.events.record(db, link, OfferAction.CREATED, performed_by=actor_id)
        self.events.notify_offer(
            db,
            link,
            recipient_id=target.counter_party_of(actor_id),
            notification_type=NotificationType.COUNTER_OFFER,
        )
        commit_or_raise(db)
        db.refresh(link)

        logger.info(
            "counter-offer created",
            extra={
                "counter_offer_id": str(link.id),
                "root_offer_id": str(root.id),
                "number": link.counteroffer_number,
            },
        )
        return link

    # ---------------------------
    # RESOLUTION
    # ---------------------------

    def accept_counter_offer(
        self, db: Session, *, counter_offer_id: uuid.UUID, actor_id: str
    ) -> Offer:
        """
        Accepting a link settles the whole thread in one transaction:
        the root takes the agreed terms and is ACCEPTED, other pending links
        are REJECTED, and the agreed quantity leaves the requirement.
        """
        now = self.clock()
        link, root = self._load_link(db, counter_offer_id)

        enforce_not_author(link, actor_id)
        self._ensure_open(db, link, now=now, actor_id=actor_id)

        try:
            req = self.requirements.get_or_404(db, link.requirement_id, for_update=True)
            if req.status != RequirementStatus.OPEN.value:
                raise InvalidStateError("Requirement is no longer open.")
            if link.offered_quantity > req.available_quantity:
                raise InvalidArgumentError(
                    f"Agreed quantity {link.offered_quantity} exceeds available quantity {req.available_quantity}."
                )

            # locking the thread reloads every link, so this runs before any link is mutated
            siblings = self._reject_siblings(db, root, keep_id=link.id, now=now)

            link.offer_status = next_status(link.offer_status, OfferTransition.ACCEPT).value
            link.status_changed_at = now

            if root.original_price is None:
                root.original_price = root.offered_unit_price
            if root.original_quantity is None:
                root.original_quantity = root.offered_quantity
            root.offered_unit_price = link.offered_unit_price
            root.offered_quantity = link.offered_quantity
            root.offer_status = next_status(root.offer_status, OfferTransition.ACCEPT, thread=True).value
            root.status_changed_at = now

            self.requirements.decrement_available(db, req.id, link.offered_quantity)
            flush_or_raise(db)
        except NegotiationError:
            db.rollback()
            raise

        self.events.record(db, link, OfferAction.ACCEPTED, performed_by=actor_id)
        self.events.record(
            db, root, OfferAction.ACCEPTED, performed_by=actor_id,
            notes=f"accepted counter-offer #{link.counteroffer_number}",
        )
        for sibling in siblings:
            self.events.record(
                db, sibling, OfferAction.REJECTED, performed_by=actor_id, notes="thread resolved"
            )
        self.events.notify_offer(
            db,
            link,
            recipient_id=link.counter_party_of(actor_id),
            notification_type=NotificationType.COUNTER_OFFER_ACCEPTED,
        )
        commit_or_raise(db)
        db.refresh(link)

        logger.info(
            "counter-offer accepted",
            extra={"counter_offer_id": str(link.id), "root_offer_id": str(root.id)},
        )
        return link

    def reject_counter_offer(
        self,
        db: Session,
        *,
        counter_offer_id: uuid.UUID,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> Offer:
        """
        Rejecting a link ends the negotiation: link and root REJECTED,
        remaining pending links REJECTED.
        """
        now = self.clock()
        link, root = self._load_link(db, counter_offer_id)

        enforce_not_author(link, actor_id)
        self._ensure_open(db, link, now=now, actor_id=actor_id)

        try:
            siblings = self._reject_siblings(db, root, keep_id=link.id, now=now)
            link.offer_status = next_status(link.offer_status, OfferTransition.REJECT).value
            link.status_changed_at = now
            root.offer_status = next_status(root.offer_status, OfferTransition.REJECT, thread=True).value
            root.status_changed_at = now
            flush_or_raise(db)
        except NegotiationError:
            db.rollback()
            raise

        self.events.record(db, link, OfferAction.REJECTED, performed_by=actor_id, notes=reason)
        self.events.record(db, root, OfferAction.REJECTED, performed_by=actor_id, notes=reason)
        for sibling in siblings:
            self.events.record(
                db, sibling, OfferAction.REJECTED, performed_by=actor_id, notes="thread resolved"
            )
        self.events.notify_offer(
            db,
            link,
            recipient_id=link.counter_party_of(actor_id),
            notification_type=NotificationType.COUNTER_OFFER_REJECTED,
            message=reason,
        )
        commit_or_raise(db)
        db.refresh(link)
        return link

    # ---------------------------
    # AUTHOR EDITS
    # ---------------------------

    def update_counter_offer(
        self,
        db: Session,
        *,
        counter_offer_id: uuid.UUID,
        actor_id: str,
        price: Optional[Decimal] = None,
        quantity: Optional[Decimal] = None,
        message: Optional[str] = None,
    ) -> Offer:
        now = self.clock()
        link, _root = self._load_link(db, counter_offer_id)

        enforce_author(link, actor_id)
        self._ensure_open(db, link, now=now, actor_id=actor_id)

        req = self.requirements.get_or_404(db, link.requirement_id)
        self._validate_terms(req, price=price, quantity=quantity)

        if price is not None:
            link.offered_unit_price = price
        if quantity is not None:
            link.offered_quantity = quantity
        if message is not None:
            link.offer_message = message
        flush_or_raise(db)

        self.events.record(db, link, OfferAction.UPDATED, performed_by=actor_id)
        self.events.notify_offer(
            db,
            link,
            recipient_id=link.counter_party_of(actor_id),
            notification_type=NotificationType.OFFER_UPDATED,
        )
        commit_or_raise(db)
        db.refresh(link)
        return link

    def delete_counter_offer(
        self, db: Session, *, counter_offer_id: uuid.UUID, actor_id: str
    ) -> Offer:
        """
        Withdraw a pending link. The countered offer reopens so the other
        party can still answer it, and the slot returns to the thread budget.
        """
        now = self.clock()
        link, root = self._load_link(db, counter_offer_id)

        enforce_author(link, actor_id)
        self._ensure_open(db, link, now=now, actor_id=actor_id)

        parent = self.store.get_or_404(db, link.parent_offer_id, for_update=True)

        link.offer_status = next_status(link.offer_status, OfferTransition.WITHDRAW).value
        link.status_changed_at = now
        link.deleted_at = now
        root.counteroffer_count = max(root.counteroffer_count - 1, 0)
        if parent.offer_status == OfferStatus.COUNTERED.value:
            parent.offer_status = next_status(parent.offer_status, OfferTransition.REOPEN, thread=True).value
            parent.status_changed_at = now
        flush_or_raise(db)

        self.events.record(db, link, OfferAction.WITHDRAWN, performed_by=actor_id)
        self.events.notify_offer(
            db,
            link,
            recipient_id=link.counter_party_of(actor_id),
            notification_type=NotificationType.OFFER_WITHDRAWN,
        )
        commit_or_raise(db)
        db.refresh(link)
        return link

    # ---------------------------
    # READS
    # ---------------------------

    def get_counter_offer(self, db: Session, *, counter_offer_id: uuid.UUID, actor_id: str) -> Offer:
        link = self.store.get_counter_offer_or_404(db, counter_offer_id)
        enforce_party(link, actor_id)
        return link

    def list_for_requirement(
        self,
        db: Session,
        *,
        requirement_id: uuid.UUID,
        actor_id: str,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[Sequence[Offer], int]:
        """
        Owner sees every thread on the requirement; anyone else only their own.
        """
        req = self.requirements.get_or_404(db, requirement_id)
        limit = min(limit or self.settings.default_page_size, self.settings.max_page_size)
        return self.store.list_counter_offers_for_requirement(
            db,
            requirement_id=req.id,
            party_id=None if req.owner_id == actor_id else actor_id,
            page=max(page, 1),
            limit=limit,
        )
