"""
Data package service layer.

Handles:
- Package creation with write-time delivery criteria validation
- Listing with state / stream / sender filters
- Destruction guard (never while transmitted)
- Recipient listing: resolver preview while draft, notifications afterwards
- The attachment-completeness collaborator used by transmission
"""

from __future__ import annotations

import secrets
import string
import uuid
from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from streamdrop.core.config import get_settings
from streamdrop.core.criteria import CriteriaCapabilities, validate_criteria
from streamdrop.core.errors import (
    InvalidCriteriaError,
    NotFoundError,
    PackageNotDestroyableError,
    PackageNotDraftError,
)
from streamdrop.models.base import utcnow
from streamdrop.models.data_package import DataPackage
from streamdrop.models.data_stream import DataStream
from streamdrop.services.criteria import resolve
from streamdrop.services.lifecycle import allowed_events, can_be_destroyed, current_state
from streamdrop.services.notifications import delete_notifications, notified_subscription_ids
from streamdrop.services.organizations import get_organization_or_404
from streamdrop_shared.schemas.common import PackageState
from streamdrop_shared.schemas.packages import PackageCreate, PackageRead

log = structlog.get_logger()

TITLE_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def generate_title(stream: Optional[DataStream]) -> str:
    """`{stream name}-{YYYYmmdd-HHMMSS}-{4 random chars}`."""
    timestamp = utcnow().strftime("%Y%m%d-%H%M%S")
    suffix = "".join(secrets.choice(TITLE_SUFFIX_ALPHABET) for _ in range(4))
    name = stream.name if stream else "Package"
    return f"{name}-{timestamp}-{suffix}"


def check_criteria(criteria: Any, capabilities: Optional[CriteriaCapabilities] = None) -> None:
    errors = validate_criteria(criteria, capabilities)
    if errors:
        raise InvalidCriteriaError(
            f"delivery_criteria {errors[0].message}", criteria_code=errors[0].code
        )


def enrich_package(package: DataPackage) -> PackageRead:
    return PackageRead(
        id=package.id,
        data_stream_id=package.data_stream_id,
        sender_organization_id=package.sender_organization_id,
        state=current_state(package),
        title=package.title,
        delivery_criteria=package.delivery_criteria,
        sent_at=package.sent_at,
        acknowledged_at=package.acknowledged_at,
        allowed_events=allowed_events(package),
        created_at=package.created_at,
        updated_at=package.updated_at,
    )


def has_completed_attachments(package: DataPackage) -> bool:
    # Attachments are not tracked yet; completeness is a deployment setting.
    return get_settings().assume_attachments_complete


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def create_package(
    session: AsyncSession,
    stream: DataStream,
    pkg_in: PackageCreate,
    capabilities: Optional[CriteriaCapabilities] = None,
) -> DataPackage:
    await get_organization_or_404(session, pkg_in.sender_organization_id)
    check_criteria(pkg_in.delivery_criteria, capabilities)

    package = DataPackage(
        data_stream_id=stream.id,
        sender_organization_id=pkg_in.sender_organization_id,
        state=PackageState.DRAFT.value,
        title=pkg_in.title or generate_title(stream),
        delivery_criteria=pkg_in.delivery_criteria,
    )
    session.add(package)
    await session.flush()

    log.info("package.created", package_id=str(package.id), stream_id=str(stream.id))
    return package


async def get_package_or_404(session: AsyncSession, package_id: uuid.UUID) -> DataPackage:
    package = await session.get(DataPackage, package_id)
    if not package:
        raise NotFoundError("Data package not found")
    return package


def parse_states(states: Optional[str]) -> Optional[list[str]]:
    """Comma-separated filter; unknown names are dropped. None means no filter."""
    if states is None:
        return None
    valid = {s.value for s in PackageState}
    return [s.strip() for s in states.split(",") if s.strip() in valid]


async def list_packages(
    session: AsyncSession,
    states: Optional[str] = None,
    data_stream_id: Optional[uuid.UUID] = None,
    sender_organization_id: Optional[uuid.UUID] = None,
) -> list[DataPackage]:
    stmt = select(DataPackage)

    wanted = parse_states(states)
    if wanted is not None:
        if not wanted:
            return []
        stmt = stmt.where(DataPackage.state.in_(wanted))
    if data_stream_id:
        stmt = stmt.where(DataPackage.data_stream_id == data_stream_id)
    if sender_organization_id:
        stmt = stmt.where(DataPackage.sender_organization_id == sender_organization_id)

    result = await session.execute(stmt.order_by(DataPackage.created_at))
    return list(result.scalars().all())


async def update_package_criteria(
    session: AsyncSession,
    package: DataPackage,
    criteria: Any,
    capabilities: Optional[CriteriaCapabilities] = None,
) -> DataPackage:
    if current_state(package) != PackageState.DRAFT:
        raise PackageNotDraftError("Delivery criteria can only change while draft")
    check_criteria(criteria, capabilities)

    package.delivery_criteria = criteria
    session.add(package)
    await session.flush()
    return package


async def destroy_package(session: AsyncSession, package: DataPackage) -> None:
    """Delete a package and its notifications; refused while transmitted."""
    if not can_be_destroyed(package):
        raise PackageNotDestroyableError(
            f"Cannot destroy data_package in state: {package.state}"
        )

    await delete_notifications(session, package.id)
    await session.delete(package)
    await session.flush()
    log.info("package.destroyed", package_id=str(package.id))


async def package_subscription_ids(
    session: AsyncSession, package: DataPackage
) -> tuple[str, set[uuid.UUID]]:
    """
    Recipients of a package and where they came from.

    A draft has no notifications yet, so its recipients are a point-in-time
    preview from the resolver. Once transmitted the notifications are the
    record of who was targeted.
    """
    if current_state(package) == PackageState.DRAFT:
        return "resolver", await resolve(session, package.delivery_criteria, package.data_stream_id)
    return "notifications", await notified_subscription_ids(session, package.id)
