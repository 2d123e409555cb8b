# app/services/notifications_service.py
from __future__ import annotations

import uuid
from typing import Optional, Sequence, Tuple

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.config import get_settings
from app.core.errors import ForbiddenError, NotFoundError
from app.models.offer_notification import OfferNotification


class NotificationService:
    def __init__(self, *, clock: Optional[Clock] = None):
        self.clock = clock or utcnow
        self.settings = get_settings()

    def list_for_recipient(
        self,
        db: Session,
        *,
        recipient_id: str,
        is_read: Optional[bool] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Tuple[Sequence[OfferNotification], int]:
        limit = min(limit or self.settings.default_page_size, self.settings.max_page_size)
        page = max(page, 1)

        conds = [OfferNotification.recipient_id == recipient_id]
        if is_read is not None:
            conds.append(OfferNotification.is_read.is_(is_read))

        total = db.execute(
            select(func.count()).select_from(OfferNotification).where(*conds)
        ).scalar_one()
        rows = (
            db.execute(
                select(OfferNotification)
                .where(*conds)
                .order_by(desc(OfferNotification.created_at), desc(OfferNotification.id))
                .offset((page - 1) * limit)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return rows, int(total)

    def mark_read(self, db: Session, *, notification_id: uuid.UUID, actor_id: str) -> OfferNotification:
        n = db.get(OfferNotification, notification_id)
        if not n:
            raise NotFoundError("Notification not found.")
        if n.recipient_id != actor_id:
            raise ForbiddenError("Only the recipient may mark this notification as read.")

        if not n.is_read:
            n.is_read = True
            n.read_at = self.clock()
            db.commit()
            db.refresh(n)
        return n
