"""
Organization and data stream services.
"""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from streamdrop.core.errors import DuplicateSiretError, NotFoundError, StreamInUseError
from streamdrop.models.data_package import DataPackage
from streamdrop.models.data_stream import DataStream
from streamdrop.models.organization import Organization
from streamdrop_shared.schemas.organizations import (
    OrgCreateRequest,
    StreamCreateRequest,
    StreamUpdateRequest,
)

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


async def create_organization(session: AsyncSession, req: OrgCreateRequest) -> Organization:
    existing = await session.execute(
        select(Organization).where(Organization.siret == req.siret)
    )
    if existing.scalar_one_or_none():
        raise DuplicateSiretError("An organization with this siret already exists")

    org = Organization(name=req.name, siret=req.siret)
    session.add(org)
    await session.flush()

    log.info("org.created", org_id=str(org.id), siret=org.siret)
    return org


async def get_organization_or_404(session: AsyncSession, org_id: uuid.UUID) -> Organization:
    org = await session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")
    return org


async def list_organizations(session: AsyncSession) -> list[Organization]:
    result = await session.execute(select(Organization).order_by(Organization.created_at))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Data streams
# ---------------------------------------------------------------------------


async def create_stream(session: AsyncSession, req: StreamCreateRequest) -> DataStream:
    await get_organization_or_404(session, req.owner_organization_id)

    stream = DataStream(
        name=req.name,
        description=req.description,
        owner_organization_id=req.owner_organization_id,
        retention_days=req.retention_days,
    )
    session.add(stream)
    await session.flush()

    log.info("stream.created", stream_id=str(stream.id), name=stream.name)
    return stream


async def get_stream_or_404(session: AsyncSession, stream_id: uuid.UUID) -> DataStream:
    stream = await session.get(DataStream, stream_id)
    if not stream:
        raise NotFoundError("Data stream not found")
    return stream


async def list_streams(session: AsyncSession) -> list[DataStream]:
    result = await session.execute(select(DataStream).order_by(DataStream.created_at))
    return list(result.scalars().all())


async def update_stream(
    session: AsyncSession, stream: DataStream, req: StreamUpdateRequest
) -> DataStream:
    data = req.model_dump(exclude_unset=True)
    # name and owner are required columns; a null leaves them unchanged
    for key in ("name", "owner_organization_id"):
        if key in data and data[key] is None:
            del data[key]
    if "owner_organization_id" in data:
        await get_organization_or_404(session, data["owner_organization_id"])

    for key, value in data.items():
        setattr(stream, key, value)
    session.add(stream)
    await session.flush()

    log.info("stream.updated", stream_id=str(stream.id), fields=sorted(data))
    return stream


async def destroy_stream(session: AsyncSession, stream: DataStream) -> None:
    """Delete a stream and its subscriptions unless packages were published on it."""
    result = await session.execute(
        select(DataPackage.id).where(DataPackage.data_stream_id == stream.id).limit(1)
    )
    if result.first() is not None:
        raise StreamInUseError("Data stream has data packages and cannot be deleted")

    await session.delete(stream)
    await session.flush()
    log.info("stream.destroyed", stream_id=str(stream.id))
