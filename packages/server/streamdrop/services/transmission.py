"""
Package transmission: a four-step saga.

1. validate_transmission      draft + completed attachments, no side effects
2. resolve_recipients         delivery criteria -> subscription ids
3. create_notifications       one notification per recipient (undo: delete the ones it created)
4. transition_to_transmitted  send event, stamps sent_at; point of no return

The first failing step's error is returned and the completed steps are
compensated in reverse, so a failed transmission leaves the package state
and its notifications as they were.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from streamdrop.core.criteria import CriteriaCapabilities
from streamdrop.core.errors import IncompleteAttachmentsError, PackageNotDraftError
from streamdrop.core.saga import SagaStep, StepFailed, run_saga
from streamdrop.models.data_package import DataPackage
from streamdrop.services.criteria import resolve
from streamdrop.services.lifecycle import current_state, send_package
from streamdrop.services.notifications import create_notifications, delete_notifications
from streamdrop.services.packages import has_completed_attachments
from streamdrop_shared.schemas.common import PackageState, TransmissionError

log = structlog.get_logger()


@dataclass
class TransmissionContext:
    session: AsyncSession
    package: DataPackage
    attachments_complete: bool
    capabilities: Optional[CriteriaCapabilities] = None
    target_subscription_ids: set[uuid.UUID] = field(default_factory=set)
    created_notification_ids: set[uuid.UUID] = field(default_factory=set)


@dataclass
class TransmissionResult:
    success: bool
    package: DataPackage
    error: Optional[TransmissionError] = None
    detail: Optional[str] = None
    target_subscription_ids: set[uuid.UUID] = field(default_factory=set)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


async def validate_transmission(ctx: TransmissionContext) -> None:
    if current_state(ctx.package) != PackageState.DRAFT:
        raise StepFailed(TransmissionError.NOT_DRAFT.value)
    if not ctx.attachments_complete:
        raise StepFailed(TransmissionError.NO_COMPLETED_ATTACHMENTS.value)


async def resolve_recipients(ctx: TransmissionContext) -> None:
    # Structural criteria errors propagate; they are never "no match".
    ctx.target_subscription_ids = await resolve(
        ctx.session,
        ctx.package.delivery_criteria,
        ctx.package.data_stream_id,
        ctx.capabilities,
    )
    if not ctx.target_subscription_ids:
        raise StepFailed(TransmissionError.NO_RECIPIENTS.value)


async def materialize_notifications(ctx: TransmissionContext) -> None:
    created = await create_notifications(ctx.session, ctx.package.id, ctx.target_subscription_ids)
    ctx.created_notification_ids = {notification.id for notification in created}


async def remove_notifications(ctx: TransmissionContext) -> None:
    # Rows from earlier attempts stay; only this run's inserts are undone
    if ctx.created_notification_ids:
        await delete_notifications(ctx.session, ctx.package.id, ctx.created_notification_ids)


async def transition_to_transmitted(ctx: TransmissionContext) -> None:
    try:
        await send_package(
            ctx.session, ctx.package, attachments_complete=ctx.attachments_complete
        )
    except PackageNotDraftError as exc:
        raise StepFailed(TransmissionError.NOT_DRAFT.value, exc.detail) from exc
    except IncompleteAttachmentsError as exc:
        raise StepFailed(TransmissionError.NO_COMPLETED_ATTACHMENTS.value, exc.detail) from exc


TRANSMISSION_STEPS: tuple[SagaStep[TransmissionContext], ...] = (
    SagaStep("validate_transmission", validate_transmission),
    SagaStep("resolve_recipients", resolve_recipients),
    SagaStep("create_notifications", materialize_notifications, remove_notifications),
    SagaStep("transition_to_transmitted", transition_to_transmitted),
)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _restore_session(ctx: TransmissionContext) -> None:
    await ctx.session.rollback()
    await ctx.session.refresh(ctx.package)


async def transmit(
    session: AsyncSession,
    package: DataPackage,
    *,
    attachments_complete: Optional[bool] = None,
    capabilities: Optional[CriteriaCapabilities] = None,
) -> TransmissionResult:
    """
    Transmit a draft package to the subscriptions its criteria resolve to.

    The package row is re-read under a row lock where the database supports
    one, so a competing attempt sees the committed state. A storage
    constraint violation rolls back the session's current transaction before
    compensating. Malformed criteria raise CriteriaError.
    """
    await session.refresh(package, with_for_update=True)
    if attachments_complete is None:
        attachments_complete = has_completed_attachments(package)

    ctx = TransmissionContext(
        session=session,
        package=package,
        attachments_complete=attachments_complete,
        capabilities=capabilities,
    )
    outcome = await run_saga(TRANSMISSION_STEPS, ctx, on_constraint_violation=_restore_session)

    if not outcome.success:
        # A lost race leaves the in-memory row behind the stored state
        await session.refresh(package)
        log.info(
            "transmission.failed",
            package_id=str(package.id),
            error=outcome.error,
            step=outcome.failed_step,
        )
        return TransmissionResult(
            success=False,
            package=package,
            error=TransmissionError(outcome.error),
            detail=outcome.detail,
            target_subscription_ids=ctx.target_subscription_ids,
        )

    log.info(
        "transmission.succeeded",
        package_id=str(package.id),
        recipients=len(ctx.target_subscription_ids),
    )
    return TransmissionResult(
        success=True,
        package=package,
        target_subscription_ids=ctx.target_subscription_ids,
    )
