from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import OfferPriority
from app.schemas.primitives import Price, Quantity
from app.services.offer_state_machine import OfferTransition


class OfferCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    requirement_id: uuid.UUID
    offered_quantity: Quantity
    # optional only on non-negotiable requirements (falls back to the unit price)
    offered_unit_price: Optional[Price] = None
    offer_message: Optional[str] = Field(default=None, max_length=2000)
    delivery_terms: Optional[str] = Field(default=None, max_length=2000)
    payment_terms: Optional[str] = Field(default=None, max_length=2000)
    offer_priority: OfferPriority = OfferPriority.MEDIUM


class OfferUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    offered_quantity: Optional[Quantity] = None
    offer_message: Optional[str] = Field(default=None, max_length=2000)
    delivery_terms: Optional[str] = Field(default=None, max_length=2000)
    payment_terms: Optional[str] = Field(default=None, max_length=2000)
    offer_priority: Optional[OfferPriority] = None


class OfferStatusUpdate(BaseModel):
    """
    Party action on an offer: ACCEPT, REJECT, WITHDRAW or EXPIRE.
    """
    model_config = ConfigDict(extra="forbid")

    action: OfferTransition
    notes: Optional[str] = Field(default=None, max_length=1000)


class CounterOfferCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    offered_unit_price: Price
    offered_quantity: Quantity
    offer_message: Optional[str] = Field(default=None, max_length=2000)


class CounterOfferUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    offered_unit_price: Optional[Price] = None
    offered_quantity: Optional[Quantity] = None
    offer_message: Optional[str] = Field(default=None, max_length=2000)


class CounterOfferReject(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class OfferOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    requirement_id: uuid.UUID
    requirement_owner_id: str
    offer_user_id: str
    author_id: str

    offered_unit_price: Decimal
    offered_quantity: Decimal
    original_price: Optional[Decimal] = None
    original_quantity: Optional[Decimal] = None

    negotiability: str
    negotiation_window: Optional[int] = None

    is_counter_offer: bool
    parent_offer_id: Optional[uuid.UUID] = None
    root_offer_id: Optional[uuid.UUID] = None
    counteroffer_count: int
    counteroffer_number: Optional[int] = None

    offer_status: str
    offer_expiry_date: Optional[datetime] = None
    status_changed_at: Optional[datetime] = None

    offer_message: Optional[str] = None
    delivery_terms: Optional[str] = None
    payment_terms: Optional[str] = None
    offer_priority: str

    created_at: datetime
    updated_at: datetime


class OfferThreadOut(BaseModel):
    root: OfferOut
    counter_offers: List[OfferOut]


class OfferHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    action: str
    performed_by: str
    notes: Optional[str] = None
    performed_at: datetime
