# app/api/v1/counter_offers.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.policies.rbac import Principal
from app.schemas.offers import CounterOfferReject, CounterOfferUpdate, OfferOut
from app.schemas.primitives import Page
from app.services.counter_offers_service import CounterOfferService

router = APIRouter()


@router.get("/counter-offers/{counter_offer_id}", response_model=OfferOut)
def get_counter_offer(
    counter_offer_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return OfferOut.model_validate(
        CounterOfferService().get_counter_offer(
            db, counter_offer_id=counter_offer_id, actor_id=principal.user_id
        )
    )


@router.post("/counter-offers/{counter_offer_id}/accept", response_model=OfferOut)
def accept_counter_offer(
    counter_offer_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    link = CounterOfferService().accept_counter_offer(
        db, counter_offer_id=counter_offer_id, actor_id=principal.user_id
    )
    return OfferOut.model_validate(link)


@router.post("/counter-offers/{counter_offer_id}/reject", response_model=OfferOut)
def reject_counter_offer(
    counter_offer_id: uuid.UUID,
    body: Optional[CounterOfferReject] = None,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    link = CounterOfferService().reject_counter_offer(
        db,
        counter_offer_id=counter_offer_id,
        actor_id=principal.user_id,
        reason=body.reason if body else None,
    )
    return OfferOut.model_validate(link)


@router.patch("/counter-offers/{counter_offer_id}", response_model=OfferOut)
def update_counter_offer(
    counter_offer_id: uuid.UUID,
    body: CounterOfferUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    link = CounterOfferService().update_counter_offer(
        db,
        counter_offer_id=counter_offer_id,
        actor_id=principal.user_id,
        price=body.offered_unit_price,
        quantity=body.offered_quantity,
        message=body.offer_message,
    )
    return OfferOut.model_validate(link)


@router.delete("/counter-offers/{counter_offer_id}", response_model=OfferOut)
def delete_counter_offer(
    counter_offer_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    link = CounterOfferService().delete_counter_offer(
        db, counter_offer_id=counter_offer_id, actor_id=principal.user_id
    )
    return OfferOut.model_validate(link)


@router.get("/requirements/{requirement_id}/counter-offers", response_model=Page[OfferOut])
def list_requirement_counter_offers(
    requirement_id: uuid.UUID,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    svc = CounterOfferService()
    rows, total = svc.list_for_requirement(
        db, requirement_id=requirement_id, actor_id=principal.user_id, page=page, limit=limit
    )
    return Page[OfferOut](
        items=[OfferOut.model_validate(r) for r in rows],
        total=total,
        page=page,
        limit=min(limit or svc.settings.default_page_size, svc.settings.max_page_size),
    )
