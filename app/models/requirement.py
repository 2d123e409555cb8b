#app/models/requirement.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import String, Integer, Numeric, CheckConstraint, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.clock import utcnow
from app.db.base import Base
from app.db.types import UTCDateTime
from app.models.enums import Negotiability, PostingType, RequirementStatus


class Requirement(Base):
    """
    Buyer-side demand that offers and bids are placed against.
    Only `available_quantity` and `status` are written by this service.
    """

    __tablename__ = "requirements"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)

    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    negotiability: Mapped[str] = mapped_column(
        String(16), nullable=False, default=Negotiability.negotiable.value
    )
    # hours
    negotiation_window: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    available_quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)

    posting_type: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PostingType.STANDARD.value
    )
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RequirementStatus.OPEN.value
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("available_quantity >= 0", name="ck_requirements_available_nonnegative"),
        Index("ix_requirements_owner_status", "owner_id", "status"),
    )

    @property
    def is_negotiable(self) -> bool:
        return self.negotiability == Negotiability.negotiable.value
