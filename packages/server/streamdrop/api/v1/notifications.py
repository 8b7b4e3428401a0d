"""
Notification endpoints.

POST /api/v1/notifications/{id}/acknowledgement — Recipient confirms receipt
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from streamdrop.core.database import get_session
from streamdrop.services.notifications import acknowledge_notification

router = APIRouter()


class NotificationRead(BaseModel):
    id: uuid.UUID
    data_package_id: uuid.UUID
    subscription_id: uuid.UUID
    acknowledged_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


@router.post("/{notification_id}/acknowledgement", response_model=NotificationRead)
async def acknowledge_notification_endpoint(
    notification_id: uuid.UUID, session: AsyncSession = Depends(get_session)
):
    notification = await acknowledge_notification(session, notification_id)
    await session.commit()
    return notification
