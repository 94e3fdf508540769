"""Kitchen / waiter order schemas."""

from __future__ import annotations

from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


OrderStatus = Literal["pending", "confirmed", "preparing", "completed", "cancelled"]
PaymentMethod = Literal["cash", "transfer", "online"]


class OrderItem(BaseModel):
    name: str
    quantity: int = Field(default=1, ge=1)
    price: Decimal = Field(default=Decimal("0"), ge=0)


class OrderCreate(BaseModel):
    customer: str = "Guest"
    waiter_name: Optional[str] = None
    table_number: Optional[str] = None
    items: List[OrderItem] = []
    payment_method: PaymentMethod = "cash"
    payment_confirmed: bool = False
    status: OrderStatus = "pending"
    total: Optional[Decimal] = Field(default=None, ge=0)

    def computed_total(self) -> Decimal:
        if self.total is not None:
            return self.total
        return sum((item.price * item.quantity for item in self.items), Decimal("0"))


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_confirmed: Optional[bool] = None


class OrderResponse(BaseModel):
    id: str
    customer: str
    waiter_name: Optional[str] = None
    table_number: Optional[str] = None
    items: List[dict] = []
    payment_method: str
    payment_confirmed: bool
    status: str
    total: float
    created_at: Optional[str] = None
