# app/api/v1/offers.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.models.enums import OfferStatus
from app.policies.rbac import Principal
from app.schemas.offers import (
    CounterOfferCreate,
    OfferCreate,
    OfferHistoryOut,
    OfferOut,
    OfferStatusUpdate,
    OfferThreadOut,
    OfferUpdate,
)
from app.schemas.primitives import Page
from app.services.counter_offers_service import CounterOfferService
from app.services.offer_store import OfferFilters
from app.services.offers_service import OfferService

router = APIRouter(prefix="/offers")


# ─────────────────────────────────────────────────────────────
# CREATE / LIST
# ─────────────────────────────────────────────────────────────

@router.post("", response_model=OfferOut, status_code=status.HTTP_201_CREATED)
def create_offer(
    body: OfferCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    offer = OfferService().create_offer(
        db,
        requirement_id=body.requirement_id,
        proposer_id=principal.user_id,
        quantity=body.offered_quantity,
        price=body.offered_unit_price,
        message=body.offer_message,
        delivery_terms=body.delivery_terms,
        payment_terms=body.payment_terms,
        priority=body.offer_priority,
    )
    return OfferOut.model_validate(offer)


@router.get("", response_model=Page[OfferOut])
def list_offers(
    requirement_id: Optional[uuid.UUID] = Query(None),
    offer_user_id: Optional[str] = Query(None),
    requirement_owner_id: Optional[str] = Query(None),
    offer_status: Optional[List[OfferStatus]] = Query(None),
    is_counter_offer: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    svc = OfferService()
    filters = OfferFilters(
        requirement_id=requirement_id,
        offer_user_id=offer_user_id,
        requirement_owner_id=requirement_owner_id,
        statuses=[s.value for s in (offer_status or [])],
        is_counter_offer=is_counter_offer,
    )
    rows, total = svc.list_offers(
        db,
        actor_id=principal.user_id,
        filters=filters,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    effective_limit = min(limit or svc.settings.default_page_size, svc.settings.max_page_size)
    return Page[OfferOut](
        items=[OfferOut.model_validate(r) for r in rows],
        total=total,
        page=page,
        limit=effective_limit,
    )


# ─────────────────────────────────────────────────────────────
# SINGLE OFFER
# ─────────────────────────────────────────────────────────────

@router.get("/{offer_id}", response_model=OfferOut)
def get_offer(
    offer_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return OfferOut.model_validate(
        OfferService().get_offer(db, offer_id=offer_id, actor_id=principal.user_id)
    )


@router.patch("/{offer_id}", response_model=OfferOut)
def update_offer(
    offer_id: uuid.UUID,
    body: OfferUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    offer = OfferService().update_offer_details(
        db,
        offer_id=offer_id,
        actor_id=principal.user_id,
        quantity=body.offered_quantity,
        message=body.offer_message,
        delivery_terms=body.delivery_terms,
        payment_terms=body.payment_terms,
        priority=body.offer_priority,
    )
    return OfferOut.model_validate(offer)


@router.post("/{offer_id}/status", response_model=OfferOut)
def transition_offer(
    offer_id: uuid.UUID,
    body: OfferStatusUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    offer = OfferService().transition_offer(
        db,
        offer_id=offer_id,
        actor_id=principal.user_id,
        transition=body.action,
        notes=body.notes,
    )
    return OfferOut.model_validate(offer)


@router.delete("/{offer_id}", response_model=OfferOut)
def delete_offer(
    offer_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return OfferOut.model_validate(
        OfferService().delete_offer(db, offer_id=offer_id, actor_id=principal.user_id)
    )


# ─────────────────────────────────────────────────────────────
# THREAD
# ─────────────────────────────────────────────────────────────

@router.post("/{offer_id}/counter", response_model=OfferOut, status_code=status.HTTP_201_CREATED)
def counter_offer(
    offer_id: uuid.UUID,
    body: CounterOfferCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    link = CounterOfferService().create_counter_offer(
        db,
        offer_id=offer_id,
        actor_id=principal.user_id,
        price=body.offered_unit_price,
        quantity=body.offered_quantity,
        message=body.offer_message,
    )
    return OfferOut.model_validate(link)


@router.get("/{offer_id}/thread", response_model=OfferThreadOut)
def get_thread(
    offer_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    root, links = OfferService().get_thread(db, offer_id=offer_id, actor_id=principal.user_id)
    return OfferThreadOut(
        root=OfferOut.model_validate(root),
        counter_offers=[OfferOut.model_validate(link) for link in links],
    )


@router.get("/{offer_id}/history", response_model=Page[OfferHistoryOut])
def get_history(
    offer_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    svc = OfferService()
    rows, total = svc.list_history(
        db, offer_id=offer_id, actor_id=principal.user_id, page=page, limit=limit
    )
    return Page[OfferHistoryOut](
        items=[OfferHistoryOut.model_validate(r) for r in rows],
        total=total,
        page=page,
        limit=min(limit or svc.settings.default_page_size, svc.settings.max_page_size),
    )
