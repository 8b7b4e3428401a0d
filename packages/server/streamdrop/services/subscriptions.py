"""
Subscription service: stream access grants for organizations.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from streamdrop.core.errors import (
    DuplicateSubscriptionError,
    InvalidPermissionsError,
    NotFoundError,
    SubscriptionInUseError,
)
from streamdrop.models.data_stream import DataStream
from streamdrop.models.subscription import Subscription
from streamdrop.services.notifications import subscription_has_notifications
from streamdrop.services.organizations import get_organization_or_404
from streamdrop_shared.schemas.subscriptions import SubscriptionCreate, SubscriptionUpdate

log = structlog.get_logger()


async def create_subscription(
    session: AsyncSession, stream: DataStream, sub_in: SubscriptionCreate
) -> Subscription:
    await get_organization_or_404(session, sub_in.organization_id)

    existing = await session.execute(
        select(Subscription).where(
            Subscription.data_stream_id == stream.id,
            Subscription.organization_id == sub_in.organization_id,
        )
    )
    if existing.scalar_one_or_none():
        raise DuplicateSubscriptionError("Organization is already subscribed to this stream")

    subscription = Subscription(
        data_stream_id=stream.id,
        organization_id=sub_in.organization_id,
        can_read=sub_in.can_read,
        can_write=sub_in.can_write,
    )
    session.add(subscription)
    await session.flush()

    log.info(
        "subscription.created",
        subscription_id=str(subscription.id),
        stream_id=str(stream.id),
        org_id=str(sub_in.organization_id),
    )
    return subscription


async def get_subscription_or_404(
    session: AsyncSession, subscription_id: uuid.UUID
) -> Subscription:
    subscription = await session.get(Subscription, subscription_id)
    if not subscription:
        raise NotFoundError("Subscription not found")
    return subscription


async def list_subscriptions(
    session: AsyncSession,
    data_stream_id: Optional[uuid.UUID] = None,
    organization_id: Optional[uuid.UUID] = None,
    can_read: Optional[bool] = None,
    can_write: Optional[bool] = None,
) -> list[Subscription]:
    stmt = select(Subscription)
    if data_stream_id:
        stmt = stmt.where(Subscription.data_stream_id == data_stream_id)
    if organization_id:
        stmt = stmt.where(Subscription.organization_id == organization_id)
    if can_read is not None:
        stmt = stmt.where(Subscription.can_read.is_(can_read))
    if can_write is not None:
        stmt = stmt.where(Subscription.can_write.is_(can_write))

    result = await session.execute(stmt.order_by(Subscription.created_at))
    return list(result.scalars().all())


async def update_subscription(
    session: AsyncSession, subscription: Subscription, sub_in: SubscriptionUpdate
) -> Subscription:
    data = sub_in.model_dump(exclude_unset=True, exclude_none=True)
    can_read = data.get("can_read", subscription.can_read)
    can_write = data.get("can_write", subscription.can_write)
    if not (can_read or can_write):
        raise InvalidPermissionsError("At least one of can_read or can_write must be true")

    subscription.can_read = can_read
    subscription.can_write = can_write
    session.add(subscription)
    await session.flush()
    return subscription


async def delete_subscription(session: AsyncSession, subscription: Subscription) -> None:
    """Delete a subscription unless a transmission already targeted it."""
    if await subscription_has_notifications(session, subscription.id):
        raise SubscriptionInUseError(
            "Subscription has notifications and cannot be deleted"
        )
    await session.delete(subscription)
    await session.flush()
    log.info("subscription.deleted", subscription_id=str(subscription.id))
