"""SQLAlchemy models."""

from app.models.settings import AppSetting
from app.models.active_order import ActiveOrder, ORDER_STATUSES, PAYMENT_METHODS

__all__ = [
    "AppSetting",
    "ActiveOrder",
    "ORDER_STATUSES",
    "PAYMENT_METHODS",
]
