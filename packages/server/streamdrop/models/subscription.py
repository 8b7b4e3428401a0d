"""Subscription model: grants an organization read and/or write access to a stream."""

import uuid

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class Subscription(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("data_stream_id", "organization_id", name="uq_subscriptions_stream_org"),
        CheckConstraint("can_read OR can_write", name="subscription_has_permission"),
    )

    data_stream_id: uuid.UUID = Field(
        foreign_key="data_streams.id", nullable=False, index=True, ondelete="CASCADE"
    )
    organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", nullable=False, index=True, ondelete="CASCADE"
    )
    can_read: bool = Field(default=True, nullable=False)
    can_write: bool = Field(default=False, nullable=False)
