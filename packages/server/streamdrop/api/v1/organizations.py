"""
Organization API endpoints.

GET    /api/v1/organizations                      — List organizations
POST   /api/v1/organizations                      — Create an organization
GET    /api/v1/organizations/{id}                 — Get organization details
GET    /api/v1/organizations/{id}/subscriptions   — Subscriptions held by the organization
"""

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from streamdrop.core.database import get_session
from streamdrop.services import organizations as org_service
from streamdrop.services.subscriptions import list_subscriptions
from streamdrop_shared.schemas.organizations import OrgCreateRequest, OrgResponse
from streamdrop_shared.schemas.subscriptions import SubscriptionRead

router = APIRouter()


@router.get("/", response_model=List[OrgResponse])
async def list_orgs(session: AsyncSession = Depends(get_session)):
    return await org_service.list_organizations(session)


@router.post("/", response_model=OrgResponse, status_code=201)
async def create_org(body: OrgCreateRequest, session: AsyncSession = Depends(get_session)):
    """Create an organization. The siret must be unique."""
    org = await org_service.create_organization(session, body)
    await session.commit()
    return org


@router.get("/{org_id}", response_model=OrgResponse)
async def get_org(org_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    return await org_service.get_organization_or_404(session, org_id)


@router.get("/{org_id}/subscriptions", response_model=List[SubscriptionRead])
async def list_org_subscriptions(org_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    await org_service.get_organization_or_404(session, org_id)
    return await list_subscriptions(session, organization_id=org_id)
