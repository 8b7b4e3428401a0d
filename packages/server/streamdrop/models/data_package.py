"""Data package model: the unit distributed to a stream's subscribers."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class DataPackage(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "data_packages"
    __table_args__ = (
        sa.Index("ix_data_packages_stream_state", "data_stream_id", "state"),
    )

    data_stream_id: uuid.UUID = Field(
        foreign_key="data_streams.id", nullable=False, index=True, ondelete="RESTRICT"
    )
    sender_organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", nullable=False, index=True
    )
    state: str = Field(nullable=False, default="draft", index=True)  # draft | transmitted | acknowledged
    title: Optional[str] = Field(default=None, max_length=255)
    delivery_criteria: Optional[dict] = Field(
        default=None, sa_type=sa.JSON().with_variant(JSONB(), "postgresql")
    )
    sent_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    acknowledged_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
