"""
Organization and data stream schemas shared between server and clients.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .common import SIRET_PATTERN


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

class OrgCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Organization display name")
    siret: str = Field(
        ...,
        pattern=SIRET_PATTERN,
        description="Organization tax identifier (14 digits)",
    )


class OrgResponse(BaseModel):
    id: uuid.UUID
    name: str
    siret: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Data streams
# ---------------------------------------------------------------------------

class StreamCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    owner_organization_id: uuid.UUID
    retention_days: Optional[int] = Field(default=365, gt=0, description="Days packages are retained")


class StreamUpdateRequest(BaseModel):
    """Partial update; omitted fields keep their stored value."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    owner_organization_id: Optional[uuid.UUID] = None
    retention_days: Optional[int] = Field(default=None, gt=0)


class StreamResponse(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    owner_organization_id: uuid.UUID
    retention_days: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
