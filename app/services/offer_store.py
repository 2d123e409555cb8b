# app/services/offer_store.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models.enums import EntityType, Negotiability, OfferStatus
from app.models.offer import Offer
from app.models.offer_history import OfferHistory

SORTABLE_COLUMNS = {
    "created_at": Offer.created_at,
    "updated_at": Offer.updated_at,
    "offered_unit_price": Offer.offered_unit_price,
    "offered_quantity": Offer.offered_quantity,
}


@dataclass
class OfferFilters:
    requirement_id: Optional[uuid.UUID] = None
    offer_user_id: Optional[str] = None
    requirement_owner_id: Optional[str] = None
    statuses: List[str] = field(default_factory=list)
    is_counter_offer: Optional[bool] = None


class OfferStore:
    """
    Reads over offers, counter-offer links and their history.
    Every query excludes soft-deleted rows.
    """

    # ---------------------------
    # SINGLE ROWS
    # ---------------------------

    def get(self, db: Session, offer_id: uuid.UUID, *, for_update: bool = False) -> Optional[Offer]:
        stmt = select(Offer).where(Offer.id == offer_id, Offer.deleted_at.is_(None))
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return db.execute(stmt).scalars().one_or_none()

    def get_or_404(self, db: Session, offer_id: uuid.UUID, *, for_update: bool = False) -> Offer:
        offer = self.get(db, offer_id, for_update=for_update)
        if not offer:
            raise NotFoundError("Offer not found.")
        return offer

    def get_counter_offer_or_404(
        self, db: Session, counter_offer_id: uuid.UUID, *, for_update: bool = False
    ) -> Offer:
        link = self.get(db, counter_offer_id, for_update=for_update)
        if not link or not link.is_counter_offer:
            raise NotFoundError("Counter-offer not found.")
        return link

    def get_root(self, db: Session, offer: Offer, *, for_update: bool = False) -> Offer:
        if not offer.is_counter_offer:
            return offer
        root = self.get(db, offer.root_offer_id, for_update=for_update)
        if not root:
            raise NotFoundError("Offer thread root not found.")
        return root

    def find_live_root(
        self, db: Session, *, requirement_id: uuid.UUID, offer_user_id: str
    ) -> Optional[Offer]:
        return (
            db.execute(
                select(Offer).where(
                    Offer.requirement_id == requirement_id,
                    Offer.offer_user_id == offer_user_id,
                    Offer.parent_offer_id.is_(None),
                    Offer.deleted_at.is_(None),
                )
            )
            .scalars()
            .first()
        )

    # ---------------------------
    # THREADS
    # ---------------------------

    def thread_links(self, db: Session, root_id: uuid.UUID, *, for_update: bool = False) -> List[Offer]:
        stmt = (
            select(Offer)
            .where(
                Offer.root_offer_id == root_id,
                Offer.is_counter_offer.is_(True),
                Offer.deleted_at.is_(None),
            )
            .order_by(asc(Offer.counteroffer_number), asc(Offer.created_at))
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return list(db.execute(stmt).scalars().all())

    def pending_links(
        self, db: Session, root_id: uuid.UUID, *, exclude_id: Optional[uuid.UUID] = None
    ) -> List[Offer]:
        return [
            link
            for link in self.thread_links(db, root_id, for_update=True)
            if link.offer_status == OfferStatus.PENDING.value and link.id != exclude_id
        ]

    # ---------------------------
    # LISTINGS
    # ---------------------------

    def list_offers(
        self,
        db: Session,
        *,
        party_id: str,
        filters: OfferFilters,
        page: int,
        limit: int,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> Tuple[Sequence[Offer], int]:
        """
        Offers visible to `party_id` (either side of the negotiation).
        """
        conds = [
            Offer.deleted_at.is_(None),
            or_(Offer.requirement_owner_id == party_id, Offer.offer_user_id == party_id),
        ]
        if filters.requirement_id is not None:
            conds.append(Offer.requirement_id == filters.requirement_id)
        if filters.offer_user_id is not None:
            conds.append(Offer.offer_user_id == filters.offer_user_id)
        if filters.requirement_owner_id is not None:
            conds.append(Offer.requirement_owner_id == filters.requirement_owner_id)
        if filters.statuses:
            conds.append(Offer.offer_status.in_(filters.statuses))
        if filters.is_counter_offer is not None:
            conds.append(Offer.is_counter_offer.is_(filters.is_counter_offer))

        column = SORTABLE_COLUMNS.get(sort_by, Offer.created_at)
        order = asc(column) if sort_order == "asc" else desc(column)

        total = db.execute(select(func.count()).select_from(Offer).where(*conds)).scalar_one()
        rows = (
            db.execute(
                select(Offer)
                .where(*conds)
                .order_by(order, desc(Offer.id))
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return rows, int(total)

    def list_counter_offers_for_requirement(
        self,
        db: Session,
        *,
        requirement_id: uuid.UUID,
        party_id: Optional[str] = None,
        page: int,
        limit: int,
    ) -> Tuple[Sequence[Offer], int]:
        conds = [
            Offer.requirement_id == requirement_id,
            Offer.is_counter_offer.is_(True),
            Offer.deleted_at.is_(None),
        ]
        if party_id is not None:
            conds.append(or_(Offer.requirement_owner_id == party_id, Offer.offer_user_id == party_id))
        total = db.execute(select(func.count()).select_from(Offer).where(*conds)).scalar_one()
        rows = (
            db.execute(
                select(Offer)
                .where(*conds)
                .order_by(desc(Offer.created_at))
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return rows, int(total)

    def list_history(
        self, db: Session, *, offer: Offer, page: int, limit: int
    ) -> Tuple[Sequence[OfferHistory], int]:
        entity_type = EntityType.COUNTER_OFFER if offer.is_counter_offer else EntityType.OFFER
        conds = [
            OfferHistory.entity_type == entity_type.value,
            OfferHistory.entity_id == offer.id,
        ]
        total = db.execute(select(func.count()).select_from(OfferHistory).where(*conds)).scalar_one()
        rows = (
            db.execute(
                select(OfferHistory)
                .where(*conds)
                .order_by(desc(OfferHistory.performed_at), desc(OfferHistory.id))
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return rows, int(total)

    # ---------------------------
    # EXPIRY
    # ---------------------------

    def expirable_ids(self, db: Session, *, now: datetime, limit: int) -> List[uuid.UUID]:
        """
        PENDING negotiable offers and links whose deadline has passed.
        Rows locked by another worker are skipped, not waited on.
        """
        return list(
            db.execute(
                select(Offer.id)
                .where(
                    Offer.offer_status == OfferStatus.PENDING.value,
                    Offer.negotiability == Negotiability.negotiable.value,
                    Offer.deleted_at.is_(None),
                    Offer.offer_expiry_date.is_not(None),
                    Offer.offer_expiry_date < now,
                )
                .order_by(asc(Offer.offer_expiry_date))
                .limit(limit)
                .with_for_update(skip_locked=True)
            )
            .scalars()
            .all()
        )
