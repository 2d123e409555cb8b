# app/api/v1/bids.py
from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.policies.rbac import Principal
from app.schemas.bids import (
    AllocationLineOut,
    AllocationOut,
    AllocationRequest,
    BidCreate,
    BidOut,
)
from app.services.allocation_service import BidAllocationService
from app.services.bids_service import BidService

router = APIRouter()


@router.post("/bids", response_model=BidOut, status_code=status.HTTP_201_CREATED)
def create_bid(
    body: BidCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    bid = BidService().create_bid(
        db,
        requirement_id=body.requirement_id,
        bidder_id=principal.user_id,
        price=body.price,
        quantity=body.quantity,
    )
    return BidOut.model_validate(bid)


@router.get("/requirements/{requirement_id}/bids", response_model=List[BidOut])
def list_bids(
    requirement_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    bids = BidService().list_bids(db, requirement_id=requirement_id, actor_id=principal.user_id)
    return [BidOut.model_validate(b) for b in bids]


@router.post("/requirements/{requirement_id}/allocations", response_model=AllocationOut)
def allocate_bids(
    requirement_id: uuid.UUID,
    body: AllocationRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    result = BidAllocationService().allocate(
        db,
        requirement_id=requirement_id,
        actor_id=principal.user_id,
        allocation=body.allocations,
        quantity_overrides=body.quantity_overrides,
    )
    return AllocationOut(
        requirement_id=result.requirement_id,
        total_allocated=result.total_allocated,
        winners=[
            AllocationLineOut(
                bid_id=line.bid_id,
                bidder_id=line.bidder_id,
                percentage=line.percentage,
                quantity=line.quantity,
            )
            for line in result.winners
        ],
        losers=result.losers,
    )
