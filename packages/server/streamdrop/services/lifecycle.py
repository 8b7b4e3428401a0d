"""
Data package delivery-state machine.

    draft --send--> transmitted --acknowledge--> acknowledged

Transitions are monotonic: nothing leaves acknowledged and nothing re-enters
draft. A failed guard raises a domain error and leaves the state unchanged.
State changes are conditional updates on the current state, so of two
concurrent attempts at most one moves the package.
"""

from __future__ import annotations

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from streamdrop.core.errors import (
    IncompleteAttachmentsError,
    PackageNotDraftError,
    PackageNotTransmittedError,
)
from streamdrop.models.base import utcnow
from streamdrop.models.data_package import DataPackage
from streamdrop_shared.schemas.common import PackageEvent, PackageState

log = structlog.get_logger()


PACKAGE_TRANSITIONS: dict[PackageState, list[PackageState]] = {
    PackageState.DRAFT: [PackageState.TRANSMITTED],
    PackageState.TRANSMITTED: [PackageState.ACKNOWLEDGED],
    PackageState.ACKNOWLEDGED: [],
}

EVENT_TARGETS: dict[PackageEvent, PackageState] = {
    PackageEvent.SEND: PackageState.TRANSMITTED,
    PackageEvent.ACKNOWLEDGE: PackageState.ACKNOWLEDGED,
}

# An in-flight transmission must not vanish
DESTROYABLE_STATES = frozenset({PackageState.DRAFT, PackageState.ACKNOWLEDGED})


def current_state(package: DataPackage) -> PackageState:
    return PackageState(package.state)


def may_fire(package: DataPackage, event: PackageEvent) -> bool:
    return EVENT_TARGETS[event] in PACKAGE_TRANSITIONS[current_state(package)]


def allowed_events(package: DataPackage) -> list[PackageEvent]:
    return [event for event in PackageEvent if may_fire(package, event)]


def can_be_destroyed(package: DataPackage) -> bool:
    return current_state(package) in DESTROYABLE_STATES


async def _move(
    session: AsyncSession,
    package: DataPackage,
    from_state: PackageState,
    to_state: PackageState,
    stamp: str,
) -> bool:
    now = utcnow()
    result = await session.execute(
        update(DataPackage)
        .where(DataPackage.id == package.id, DataPackage.state == from_state.value)
        .values(state=to_state.value, updated_at=now, **{stamp: now})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    await session.refresh(package)
    return True


async def send_package(
    session: AsyncSession,
    package: DataPackage,
    *,
    attachments_complete: bool,
) -> DataPackage:
    """Fire `send`: draft -> transmitted, stamping sent_at."""
    if not may_fire(package, PackageEvent.SEND):
        raise PackageNotDraftError(f"Cannot send package in state '{package.state}'")
    if not attachments_complete:
        raise IncompleteAttachmentsError("Package has no completed attachments")

    if not await _move(
        session, package, PackageState.DRAFT, PackageState.TRANSMITTED, stamp="sent_at"
    ):
        raise PackageNotDraftError("Package is no longer a draft")

    log.info("package.sent", package_id=str(package.id))
    return package


async def acknowledge_package(session: AsyncSession, package: DataPackage) -> DataPackage:
    """Fire `acknowledge`: transmitted -> acknowledged, stamping acknowledged_at."""
    if not may_fire(package, PackageEvent.ACKNOWLEDGE):
        raise PackageNotTransmittedError("State must be transmitted")

    if not await _move(
        session,
        package,
        PackageState.TRANSMITTED,
        PackageState.ACKNOWLEDGED,
        stamp="acknowledged_at",
    ):
        raise PackageNotTransmittedError("State must be transmitted")

    log.info("package.acknowledged", package_id=str(package.id))
    return package
