"""
Subscription endpoints.

GET    /api/v1/subscriptions        — Filter by stream, organization, permissions
GET    /api/v1/subscriptions/{id}
PATCH  /api/v1/subscriptions/{id}   — Change permissions
DELETE /api/v1/subscriptions/{id}   — Refused once a transmission targeted it
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from streamdrop.core.database import get_session
from streamdrop.services import subscriptions as sub_service
from streamdrop_shared.schemas.subscriptions import SubscriptionRead, SubscriptionUpdate

router = APIRouter()


@router.get("/", response_model=List[SubscriptionRead])
async def list_subscriptions_endpoint(
    data_stream_id: Optional[uuid.UUID] = None,
    organization_id: Optional[uuid.UUID] = None,
    can_read: Optional[bool] = None,
    can_write: Optional[bool] = None,
    session: AsyncSession = Depends(get_session),
):
    return await sub_service.list_subscriptions(
        session,
        data_stream_id=data_stream_id,
        organization_id=organization_id,
        can_read=can_read,
        can_write=can_write,
    )


@router.get("/{subscription_id}", response_model=SubscriptionRead)
async def get_subscription_endpoint(
    subscription_id: uuid.UUID, session: AsyncSession = Depends(get_session)
):
    return await sub_service.get_subscription_or_404(session, subscription_id)


@router.patch("/{subscription_id}", response_model=SubscriptionRead)
async def update_subscription_endpoint(
    subscription_id: uuid.UUID,
    body: SubscriptionUpdate,
    session: AsyncSession = Depends(get_session),
):
    subscription = await sub_service.get_subscription_or_404(session, subscription_id)
    subscription = await sub_service.update_subscription(session, subscription, body)
    await session.commit()
    return subscription


@router.delete("/{subscription_id}", status_code=204)
async def delete_subscription_endpoint(
    subscription_id: uuid.UUID, session: AsyncSession = Depends(get_session)
):
    subscription = await sub_service.get_subscription_or_404(session, subscription_id)
    await sub_service.delete_subscription(session, subscription)
    await session.commit()
    return Response(status_code=204)
