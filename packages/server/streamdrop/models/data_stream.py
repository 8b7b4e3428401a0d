"""Data stream model: a channel packages are published on."""

from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin


class DataStream(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "data_streams"

    name: str = Field(nullable=False)
    description: Optional[str] = None
    owner_organization_id: uuid.UUID = Field(
        foreign_key="organizations.id", nullable=False, index=True
    )
    retention_days: Optional[int] = Field(default=365)
