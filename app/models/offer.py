#app/models/offer.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import (
    String,
    Integer,
    Numeric,
    Text,
    ForeignKey,
    CheckConstraint,
    Index,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utcnow
from app.db.base import Base
from app.db.types import UTCDateTime
from app.models.enums import Negotiability, OfferPriority, OfferStatus


class Offer(Base):
    """
    A seller's offer on a requirement.

    Counter-offers are rows of the same table chained to the thread root:
    `is_counter_offer` is set, `parent_offer_id` points at the offer being
    countered and `root_offer_id` at the first offer of the thread.
    """

    __tablename__ = "offers"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    requirement_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("requirements.id", ondelete="CASCADE"), nullable=False
    )

    # parties
    requirement_owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    offer_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    # who issued this record (proposer for roots, countering party for links)
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)

    offered_unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    offered_quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)

    original_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    original_quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)

    negotiability: Mapped[str] = mapped_column(
        String(16), nullable=False, default=Negotiability.negotiable.value
    )
    negotiation_window: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # chain
    is_counter_offer: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    parent_offer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, ForeignKey("offers.id", ondelete="CASCADE"), nullable=True
    )
    root_offer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, ForeignKey("offers.id", ondelete="CASCADE"), nullable=True
    )
    counteroffer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    counteroffer_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    offer_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=OfferStatus.PENDING.value
    )
    offer_expiry_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    offer_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivery_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payment_terms: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    offer_priority: Mapped[str] = mapped_column(
        String(8), nullable=False, default=OfferPriority.MEDIUM.value
    )

    deleted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint("offered_quantity > 0", name="ck_offers_quantity_positive"),
        CheckConstraint("offered_unit_price >= 0", name="ck_offers_price_nonnegative"),
        CheckConstraint("counteroffer_count >= 0", name="ck_offers_counteroffer_count_nonnegative"),
        # one live root offer per (requirement, offer user)
        Index(
            "uq_offers_live_root",
            "requirement_id",
            "offer_user_id",
            unique=True,
            postgresql_where=text("deleted_at IS NULL AND parent_offer_id IS NULL"),
            sqlite_where=text("deleted_at IS NULL AND parent_offer_id IS NULL"),
        ),
        Index("ix_offers_status_expiry", "offer_status", "offer_expiry_date"),
        Index("ix_offers_root", "root_offer_id"),
        Index("ix_offers_requirement", "requirement_id"),
    )

    @property
    def is_negotiable(self) -> bool:
        return self.negotiability == Negotiability.negotiable.value

    @property
    def thread_root_id(self) -> uuid.UUID:
        return self.root_offer_id or self.id

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.requirement_owner_id, self.offer_user_id)

    def counter_party_of(self, user_id: str) -> str:
        if user_id == self.requirement_owner_id:
            return self.offer_user_id
        return self.requirement_owner_id
