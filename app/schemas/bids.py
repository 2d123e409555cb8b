from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.primitives import Percentage, Price, Quantity


class BidCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    requirement_id: uuid.UUID
    price: Price
    quantity: Quantity


class BidOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    requirement_id: uuid.UUID
    bidder_id: str
    price: Decimal
    quantity: Decimal
    status: str
    original_price: Optional[Decimal] = None
    original_quantity: Optional[Decimal] = None
    allocated_percentage: Optional[Decimal] = None
    allocated_quantity: Optional[Decimal] = None
    created_at: datetime
    updated_at: datetime


class AllocationRequest(BaseModel):
    """
    bid id -> percentage of the requirement's available quantity.
    Percentages must sum to 100; 0 marks a bid as lost.
    """
    model_config = ConfigDict(extra="forbid")

    allocations: Dict[uuid.UUID, Percentage] = Field(..., min_length=1)
    quantity_overrides: Optional[Dict[uuid.UUID, Quantity]] = None


class AllocationLineOut(BaseModel):
    bid_id: uuid.UUID
    bidder_id: str
    percentage: Decimal
    quantity: Decimal


class AllocationOut(BaseModel):
    requirement_id: uuid.UUID
    total_allocated: Decimal
    winners: List[AllocationLineOut]
    losers: List[uuid.UUID]
