from __future__ import annotations
from dataclasses import dataclass

from app.models.enums import UserRole


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: UserRole
    display_name: str
