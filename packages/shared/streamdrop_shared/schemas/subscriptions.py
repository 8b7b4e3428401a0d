"""Subscription schemas: which organizations may read or write a data stream."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, model_validator


class SubscriptionCreate(BaseModel):
    organization_id: uuid.UUID
    can_read: bool = True
    can_write: bool = False

    @model_validator(mode="after")
    def _require_a_permission(self) -> "SubscriptionCreate":
        if not (self.can_read or self.can_write):
            raise ValueError("at least one of can_read or can_write must be true")
        return self


class SubscriptionUpdate(BaseModel):
    can_read: Optional[bool] = None
    can_write: Optional[bool] = None


class SubscriptionRead(BaseModel):
    id: uuid.UUID
    data_stream_id: uuid.UUID
    organization_id: uuid.UUID
    can_read: bool
    can_write: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
