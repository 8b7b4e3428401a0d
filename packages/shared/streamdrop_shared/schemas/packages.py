"""Data package schemas: creation, reads, transmission outcome."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .common import ErrorBody, PackageEvent, PackageState


class PackageCreate(BaseModel):
    sender_organization_id: uuid.UUID
    title: Optional[str] = Field(None, max_length=255)
    # Stored as an opaque document; shape checked by the criteria validator
    delivery_criteria: Optional[Any] = None


class PackageCriteriaUpdate(BaseModel):
    delivery_criteria: Optional[Any] = None


class PackageRead(BaseModel):
    id: uuid.UUID
    data_stream_id: uuid.UUID
    sender_organization_id: uuid.UUID
    state: PackageState
    title: Optional[str] = None
    delivery_criteria: Optional[Any] = None
    sent_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    allowed_events: List[PackageEvent] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PackageSubscriptions(BaseModel):
    """Recipients of a package: a resolver preview while draft, notifications after."""
    source: str  # resolver | notifications
    subscription_ids: List[uuid.UUID] = Field(default_factory=list)


class TransmissionRead(BaseModel):
    success: bool
    error: Optional[ErrorBody] = None
    package: Optional[PackageRead] = None
    target_subscription_ids: List[uuid.UUID] = Field(default_factory=list)


class CriteriaValidationRequest(BaseModel):
    delivery_criteria: Optional[Any] = None


class CriteriaValidationResponse(BaseModel):
    valid: bool
    errors: List[dict] = Field(default_factory=list)
