from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Generic, List, TypeVar

from pydantic import BaseModel, Field

# --- Numeric primitives ---
Price = Annotated[Decimal, Field(ge=0, max_digits=18, decimal_places=2)]
Quantity = Annotated[Decimal, Field(gt=0, max_digits=18, decimal_places=4)]
Percentage = Annotated[Decimal, Field(max_digits=7, decimal_places=4)]

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
