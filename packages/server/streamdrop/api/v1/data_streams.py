"""
Data stream endpoints, with the subscriptions and packages nested under a stream.

GET    /api/v1/data-streams
POST   /api/v1/data-streams
GET    /api/v1/data-streams/{id}
PATCH  /api/v1/data-streams/{id}
DELETE /api/v1/data-streams/{id}           (refused while packages exist)
GET    /api/v1/data-streams/{id}/subscriptions
POST   /api/v1/data-streams/{id}/subscriptions
GET    /api/v1/data-streams/{id}/data-packages
POST   /api/v1/data-streams/{id}/data-packages   — Create a draft package (criteria validated)
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from streamdrop.core.database import get_session
from streamdrop.services import organizations as org_service
from streamdrop.services.packages import create_package, enrich_package, list_packages
from streamdrop.services.subscriptions import create_subscription, list_subscriptions
from streamdrop_shared.schemas.organizations import (
    StreamCreateRequest,
    StreamResponse,
    StreamUpdateRequest,
)
from streamdrop_shared.schemas.packages import PackageCreate, PackageRead
from streamdrop_shared.schemas.subscriptions import SubscriptionCreate, SubscriptionRead

router = APIRouter()


@router.get("/", response_model=List[StreamResponse])
async def list_streams_endpoint(session: AsyncSession = Depends(get_session)):
    return await org_service.list_streams(session)


@router.post("/", response_model=StreamResponse, status_code=201)
async def create_stream_endpoint(
    body: StreamCreateRequest, session: AsyncSession = Depends(get_session)
):
    stream = await org_service.create_stream(session, body)
    await session.commit()
    return stream


@router.get("/{stream_id}", response_model=StreamResponse)
async def get_stream_endpoint(stream_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    return await org_service.get_stream_or_404(session, stream_id)


@router.patch("/{stream_id}", response_model=StreamResponse)
async def update_stream_endpoint(
    stream_id: uuid.UUID,
    body: StreamUpdateRequest,
    session: AsyncSession = Depends(get_session),
):
    stream = await org_service.get_stream_or_404(session, stream_id)
    stream = await org_service.update_stream(session, stream, body)
    await session.commit()
    return stream


@router.delete("/{stream_id}", status_code=204)
async def destroy_stream_endpoint(stream_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    stream = await org_service.get_stream_or_404(session, stream_id)
    await org_service.destroy_stream(session, stream)
    await session.commit()
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Subscriptions
# ---------------------------------------------------------------------------


@router.get("/{stream_id}/subscriptions", response_model=List[SubscriptionRead])
async def list_stream_subscriptions(
    stream_id: uuid.UUID,
    can_read: Optional[bool] = None,
    can_write: Optional[bool] = None,
    session: AsyncSession = Depends(get_session),
):
    await org_service.get_stream_or_404(session, stream_id)
    return await list_subscriptions(
        session, data_stream_id=stream_id, can_read=can_read, can_write=can_write
    )


@router.post("/{stream_id}/subscriptions", response_model=SubscriptionRead, status_code=201)
async def create_stream_subscription(
    stream_id: uuid.UUID,
    body: SubscriptionCreate,
    session: AsyncSession = Depends(get_session),
):
    stream = await org_service.get_stream_or_404(session, stream_id)
    subscription = await create_subscription(session, stream, body)
    await session.commit()
    return subscription


# ---------------------------------------------------------------------------
# Data packages
# ---------------------------------------------------------------------------


@router.get("/{stream_id}/data-packages", response_model=List[PackageRead])
async def list_stream_packages(
    stream_id: uuid.UUID,
    state: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    await org_service.get_stream_or_404(session, stream_id)
    packages = await list_packages(session, states=state, data_stream_id=stream_id)
    return [enrich_package(p) for p in packages]


@router.post("/{stream_id}/data-packages", response_model=PackageRead, status_code=201)
async def create_stream_package(
    stream_id: uuid.UUID,
    body: PackageCreate,
    session: AsyncSession = Depends(get_session),
):
    stream = await org_service.get_stream_or_404(session, stream_id)
    package = await create_package(session, stream, body)
    await session.commit()
    return enrich_package(package)
