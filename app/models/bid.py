#app/models/bid.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import String, Integer, Numeric, ForeignKey, CheckConstraint, Index, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utcnow
from app.db.base import Base
from app.db.types import UTCDateTime
from app.models.enums import BidStatus


class Bid(Base):
    __tablename__ = "bids"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    requirement_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, ForeignKey("requirements.id", ondelete="CASCADE"), nullable=False
    )
    bidder_id: Mapped[str] = mapped_column(String(64), nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=BidStatus.ACTIVE.value
    )

    # allocation outcome
    original_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    original_quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)
    allocated_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(7, 4), nullable=True)
    allocated_quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_bids_quantity_positive"),
        CheckConstraint("price >= 0", name="ck_bids_price_nonnegative"),
        Index(
            "uq_bids_active_bidder",
            "requirement_id",
            "bidder_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
        Index("ix_bids_requirement_status", "requirement_id", "status"),
    )
