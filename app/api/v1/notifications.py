# app/api/v1/notifications.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.auth_deps import get_current_principal
from app.db.session import get_db
from app.policies.rbac import Principal
from app.schemas.notifications import NotificationOut
from app.schemas.primitives import Page
from app.services.notifications_service import NotificationService

router = APIRouter(prefix="/notifications")


@router.get("", response_model=Page[NotificationOut])
def list_notifications(
    is_read: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    svc = NotificationService()
    rows, total = svc.list_for_recipient(
        db, recipient_id=principal.user_id, is_read=is_read, page=page, limit=limit
    )
    return Page[NotificationOut](
        items=[NotificationOut.model_validate(n) for n in rows],
        total=total,
        page=page,
        limit=min(limit or svc.settings.default_page_size, svc.settings.max_page_size),
    )


@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    n = NotificationService().mark_read(db, notification_id=notification_id, actor_id=principal.user_id)
    return NotificationOut.model_validate(n)
