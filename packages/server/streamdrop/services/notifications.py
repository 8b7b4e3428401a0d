"""
Notification persistence: the record that a subscription was targeted by a
package transmission. Unique per (package, subscription).
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from streamdrop.core.errors import NotFoundError
from streamdrop.models.base import utcnow
from streamdrop.models.notification import Notification

log = structlog.get_logger()


async def notified_subscription_ids(
    session: AsyncSession, package_id: uuid.UUID
) -> set[uuid.UUID]:
    result = await session.execute(
        select(Notification.subscription_id).where(Notification.data_package_id == package_id)
    )
    return {row[0] for row in result.all()}


async def count_notifications(session: AsyncSession, package_id: uuid.UUID) -> int:
    result = await session.execute(
        select(func.count()).select_from(Notification).where(
            Notification.data_package_id == package_id
        )
    )
    return result.scalar_one()


async def create_notifications(
    session: AsyncSession,
    package_id: uuid.UUID,
    subscription_ids: Iterable[uuid.UUID],
) -> list[Notification]:
    """
    Create one notification per subscription not yet notified for the package.

    Pairs that already exist are skipped, so re-running with the same
    recipients is a no-op. A concurrent insert of the same pair still hits
    the unique constraint and raises IntegrityError on flush.
    """
    existing = await notified_subscription_ids(session, package_id)
    created = [
        Notification(data_package_id=package_id, subscription_id=subscription_id)
        for subscription_id in set(subscription_ids) - existing
    ]
    session.add_all(created)
    await session.flush()
    return created


async def delete_notifications(
    session: AsyncSession,
    package_id: uuid.UUID,
    notification_ids: Optional[Iterable[uuid.UUID]] = None,
) -> int:
    """Delete the notifications of a package, or only the given ones when ids are passed."""
    stmt = delete(Notification).where(Notification.data_package_id == package_id)
    if notification_ids is not None:
        stmt = stmt.where(Notification.id.in_(list(notification_ids)))
    result = await session.execute(stmt.execution_options(synchronize_session="fetch"))
    await session.flush()
    return result.rowcount


async def subscription_has_notifications(
    session: AsyncSession, subscription_id: uuid.UUID
) -> bool:
    result = await session.execute(
        select(Notification.id).where(Notification.subscription_id == subscription_id).limit(1)
    )
    return result.first() is not None


async def acknowledge_notification(
    session: AsyncSession, notification_id: uuid.UUID
) -> Notification:
    notification = await session.get(Notification, notification_id)
    if not notification:
        raise NotFoundError("Notification not found")
    if notification.acknowledged_at is None:
        notification.acknowledged_at = utcnow()
        session.add(notification)
        await session.flush()
        log.info("notification.acknowledged", notification_id=str(notification.id))
    return notification
