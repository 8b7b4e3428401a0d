"""Notification model: a subscription targeted by a package transmission."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Notification(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (
        UniqueConstraint("data_package_id", "subscription_id", name="uq_notifications_package_subscription"),
    )

    data_package_id: uuid.UUID = Field(
        foreign_key="data_packages.id", nullable=False, index=True, ondelete="CASCADE"
    )
    subscription_id: uuid.UUID = Field(
        foreign_key="subscriptions.id", nullable=False, index=True, ondelete="RESTRICT"
    )
    acknowledged_at: Optional[datetime] = Field(
        default=None, sa_type=sa.DateTime(timezone=True), index=True
    )
