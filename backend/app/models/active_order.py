"""Orders shown on the kitchen display and waiter terminals."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, String, DateTime, Numeric, Boolean, JSON

from app.db.base import Base


ORDER_STATUSES = ("pending", "confirmed", "preparing", "completed", "cancelled")
PAYMENT_METHODS = ("cash", "transfer", "online")


def _new_order_id() -> str:
    return uuid.uuid4().hex


class ActiveOrder(Base):
    """A customer order as the floor staff sees it."""
    __tablename__ = "active_orders"

    id = Column(String(36), primary_key=True, default=_new_order_id)
    customer = Column(String(200), nullable=False, default="Guest")
    waiter_name = Column(String(200), nullable=True)
    table_number = Column(String(50), nullable=True)
    items = Column(JSON, nullable=True)  # [{"name": ..., "quantity": ..., "price": ...}]
    payment_method = Column(String(20), nullable=False, default="cash")  # cash, transfer, online
    payment_confirmed = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    total = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer": self.customer,
            "waiter_name": self.waiter_name,
            "table_number": self.table_number,
            "items": self.items or [],
            "payment_method": self.payment_method,
            "payment_confirmed": bool(self.payment_confirmed),
            "status": self.status,
            "total": float(self.total or 0),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
