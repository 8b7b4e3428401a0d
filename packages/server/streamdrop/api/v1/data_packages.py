"""
Data package endpoints: reads, criteria edits, destruction, recipients and
the transmission workflow.

Lifecycle: draft → transmitted → acknowledged
- Criteria are validated before they are stored.
- A transmitted package cannot be destroyed until it is acknowledged.
- GET /subscriptions previews recipients while draft, lists notified ones after.
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from streamdrop.core.criteria import CriteriaError
from streamdrop.core.database import get_session
from streamdrop.core.errors import InvalidCriteriaError
from streamdrop.services import packages as pkg_service
from streamdrop.services.lifecycle import acknowledge_package
from streamdrop.services.transmission import transmit
from streamdrop_shared.schemas.common import ErrorBody
from streamdrop_shared.schemas.packages import (
    PackageCriteriaUpdate,
    PackageRead,
    PackageSubscriptions,
    TransmissionRead,
)

router = APIRouter()


@router.get("/", response_model=List[PackageRead])
async def list_packages_endpoint(
    state: Optional[str] = None,
    data_stream_id: Optional[uuid.UUID] = None,
    sender_organization_id: Optional[uuid.UUID] = None,
    session: AsyncSession = Depends(get_session),
):
    """List packages. `state` accepts a comma-separated list (draft,transmitted)."""
    packages = await pkg_service.list_packages(
        session,
        states=state,
        data_stream_id=data_stream_id,
        sender_organization_id=sender_organization_id,
    )
    return [pkg_service.enrich_package(p) for p in packages]


@router.get("/{package_id}", response_model=PackageRead)
async def get_package_endpoint(package_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    package = await pkg_service.get_package_or_404(session, package_id)
    return pkg_service.enrich_package(package)


@router.patch("/{package_id}", response_model=PackageRead)
async def update_package_criteria_endpoint(
    package_id: uuid.UUID,
    body: PackageCriteriaUpdate,
    session: AsyncSession = Depends(get_session),
):
    """Replace the delivery criteria of a draft package."""
    package = await pkg_service.get_package_or_404(session, package_id)
    package = await pkg_service.update_package_criteria(session, package, body.delivery_criteria)
    await session.commit()
    return pkg_service.enrich_package(package)


@router.delete("/{package_id}", status_code=204)
async def destroy_package_endpoint(package_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    package = await pkg_service.get_package_or_404(session, package_id)
    await pkg_service.destroy_package(session, package)
    await session.commit()
    return Response(status_code=204)


@router.get("/{package_id}/subscriptions", response_model=PackageSubscriptions)
async def list_package_subscriptions_endpoint(
    package_id: uuid.UUID, session: AsyncSession = Depends(get_session)
):
    package = await pkg_service.get_package_or_404(session, package_id)
    try:
        source, ids = await pkg_service.package_subscription_ids(session, package)
    except CriteriaError as exc:
        raise InvalidCriteriaError(f"delivery_criteria {exc.message}", criteria_code=exc.code) from exc
    return PackageSubscriptions(source=source, subscription_ids=sorted(ids, key=str))


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@router.post(
    "/{package_id}/transmission",
    response_model=TransmissionRead,
    responses={422: {"model": TransmissionRead, "description": "Transmission refused"}},
)
async def transmit_package_endpoint(package_id: uuid.UUID, session: AsyncSession = Depends(get_session)):
    """Transmit a draft package to the subscriptions its criteria resolve to."""
    package = await pkg_service.get_package_or_404(session, package_id)
    try:
        result = await transmit(session, package)
    except CriteriaError as exc:
        raise InvalidCriteriaError(f"delivery_criteria {exc.message}", criteria_code=exc.code) from exc
    await session.commit()

    body = TransmissionRead(
        success=result.success,
        package=pkg_service.enrich_package(result.package),
        target_subscription_ids=sorted(result.target_subscription_ids, key=str),
    )
    if not result.success:
        body.error = ErrorBody(code=result.error.value, detail=result.detail)
        return JSONResponse(status_code=422, content=body.model_dump(mode="json"))
    return body


@router.post("/{package_id}/acknowledgement", response_model=PackageRead)
async def acknowledge_package_endpoint(
    package_id: uuid.UUID, session: AsyncSession = Depends(get_session)
):
    package = await pkg_service.get_package_or_404(session, package_id)
    package = await acknowledge_package(session, package)
    await session.commit()
    return pkg_service.enrich_package(package)
