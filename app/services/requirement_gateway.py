# app/services/requirement_gateway.py
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.errors import InvalidArgumentError, NotFoundError
from app.models.enums import RequirementStatus
from app.models.requirement import Requirement


class RequirementGateway(Protocol):
    def get(
        self, db: Session, requirement_id: uuid.UUID, *, for_update: bool = False
    ) -> Optional[Requirement]: ...

    def decrement_available(
        self, db: Session, requirement_id: uuid.UUID, quantity: Decimal
    ) -> None: ...

    def close(self, db: Session, requirement_id: uuid.UUID) -> None: ...


class SqlRequirementGateway:
    """
    Requirement access backed by the local `requirements` table.
    """

    def get(
        self, db: Session, requirement_id: uuid.UUID, *, for_update: bool = False
    ) -> Optional[Requirement]:
        stmt = select(Requirement).where(Requirement.id == requirement_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return db.execute(stmt).scalars().one_or_none()

    def get_or_404(
        self, db: Session, requirement_id: uuid.UUID, *, for_update: bool = False
    ) -> Requirement:
        req = self.get(db, requirement_id, for_update=for_update)
        if not req:
            raise NotFoundError("Requirement not found.")
        return req

    def decrement_available(
        self, db: Session, requirement_id: uuid.UUID, quantity: Decimal
    ) -> None:
        """
        Conditional decrement: never lets available_quantity go negative,
        even when two writers race past the read-side check.
        """
        result = db.execute(
            update(Requirement)
            .where(
                Requirement.id == requirement_id,
                Requirement.available_quantity >= quantity,
            )
            .values(available_quantity=Requirement.available_quantity - quantity)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise InvalidArgumentError(
                "Requested quantity exceeds the requirement's available quantity."
            )

    def close(self, db: Session, requirement_id: uuid.UUID) -> None:
        db.execute(
            update(Requirement)
            .where(Requirement.id == requirement_id)
            .values(status=RequirementStatus.CLOSED.value)
            .execution_options(synchronize_session="fetch")
        )
