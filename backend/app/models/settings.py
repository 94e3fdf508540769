"""Key-value settings store shared by every tablet and screen."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint

from app.db.base import Base


class AppSetting(Base):
    """Key-value settings store."""
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, index=True)
    category = Column(String(50), nullable=False, index=True)  # geofence, preorder, signals
    key = Column(String(100), nullable=False)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("category", "key", name="uq_app_settings_category_key"),
        {"sqlite_autoincrement": True},
    )
