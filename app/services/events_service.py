# app/services/events_service.py
from __future__ import annotations

import logging
import uuid
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from app.models.enums import EntityType, NotificationType, OfferAction
from app.models.offer import Offer
from app.models.offer_history import OfferHistory
from app.models.offer_notification import OfferNotification

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


class HistorySink(Protocol):
    def append(
        self,
        db: Session,
        *,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        action: OfferAction,
        performed_by: str,
        notes: Optional[str] = None,
    ) -> None: ...


class NotificationSink(Protocol):
    def send(
        self,
        db: Session,
        *,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        recipient_id: str,
        notification_type: NotificationType,
        message: Optional[str] = None,
    ) -> None: ...


class SqlHistorySink:
    def append(self, db, *, entity_type, entity_id, action, performed_by, notes=None) -> None:
        # savepoint: a failed insert must not poison the caller's transaction
        with db.begin_nested():
            db.add(
                OfferHistory(
                    entity_type=entity_type.value,
                    entity_id=entity_id,
                    action=action.value,
                    performed_by=performed_by,
                    notes=notes,
                )
            )


class SqlNotificationSink:
    def send(
        self, db, *, entity_type, entity_id, recipient_id, notification_type, message=None
    ) -> None:
        with db.begin_nested():
            db.add(
                OfferNotification(
                    entity_type=entity_type.value,
                    entity_id=entity_id,
                    recipient_id=recipient_id,
                    notification_type=notification_type.value,
                    message=message,
                )
            )


def entity_type_of(offer: Offer) -> EntityType:
    return EntityType.COUNTER_OFFER if offer.is_counter_offer else EntityType.OFFER


class NegotiationEvents:
    """
    Best-effort history and notification emission.

    Callers must flush their primary writes first; a failing sink is
    logged and never undoes the transition it describes.
    """

    def __init__(
        self,
        history: Optional[HistorySink] = None,
        notifications: Optional[NotificationSink] = None,
    ):
        self.history_sink = history or SqlHistorySink()
        self.notification_sink = notifications or SqlNotificationSink()

    def record(
        self,
        db: Session,
        offer: Offer,
        action: OfferAction,
        *,
        performed_by: str,
        notes: Optional[str] = None,
    ) -> None:
        self.record_entity(
            db,
            entity_type=entity_type_of(offer),
            entity_id=offer.id,
            action=action,
            performed_by=performed_by,
            notes=notes,
        )

    def record_entity(
        self,
        db: Session,
        *,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        action: OfferAction,
        performed_by: str,
        notes: Optional[str] = None,
    ) -> None:
        try:
            self.history_sink.append(
                db,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                performed_by=performed_by,
                notes=notes,
            )
        except Exception:
            logger.exception(
                "history write failed",
                extra={"entity_type": entity_type.value, "entity_id": str(entity_id), "action": action.value},
            )

    def notify(
        self,
        db: Session,
        *,
        entity_type: EntityType,
        entity_id: uuid.UUID,
        recipient_id: str,
        notification_type: NotificationType,
        message: Optional[str] = None,
    ) -> None:
        try:
            self.notification_sink.send(
                db,
                entity_type=entity_type,
                entity_id=entity_id,
                recipient_id=recipient_id,
                notification_type=notification_type,
                message=message,
            )
        except Exception:
            logger.exception(
                "notification failed",
                extra={
                    "entity_id": str(entity_id),
                    "recipient_id": recipient_id,
                    "notification_type": notification_type.value,
                },
            )

    def notify_offer(
        self,
        db: Session,
        offer: Offer,
        *,
        recipient_id: str,
        notification_type: NotificationType,
        message: Optional[str] = None,
    ) -> None:
        self.notify(
            db,
            entity_type=entity_type_of(offer),
            entity_id=offer.id,
            recipient_id=recipient_id,
            notification_type=notification_type,
            message=message,
        )
