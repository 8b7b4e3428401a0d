"""
Delivery criteria resolution: turns a criteria document into the set of
subscriptions of a data stream that should receive a package.

Each criterion type has one evaluator. Evaluators only ever return
subscriptions of the target stream that carry read permission.
"""

from __future__ import annotations

import uuid
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from streamdrop.core.criteria import (
    AllOf,
    AnyOf,
    CriteriaCapabilities,
    Expression,
    Leaf,
    UnsupportedCriterionError,
    parse_criteria,
)
from streamdrop.models.data_stream import DataStream
from streamdrop.models.organization import Organization
from streamdrop.models.subscription import Subscription
from streamdrop_shared.schemas.common import CriterionType

log = structlog.get_logger()

Evaluator = Callable[[AsyncSession, tuple[str, ...], uuid.UUID], Awaitable[set[uuid.UUID]]]


# ---------------------------------------------------------------------------
# Evaluators
# ---------------------------------------------------------------------------


def _as_uuids(values: Iterable[str]) -> list[uuid.UUID]:
    """Drop values that cannot be identifiers; they could never match a row."""
    ids = []
    for value in values:
        try:
            ids.append(uuid.UUID(str(value)))
        except ValueError:
            log.debug("criteria.invalid_identifier", value=value)
    return ids


def _readable_subscriptions(stream_id: uuid.UUID):
    return select(Subscription.id).where(
        Subscription.data_stream_id == stream_id,
        Subscription.can_read.is_(True),
    )


async def _ids(session: AsyncSession, stmt) -> set[uuid.UUID]:
    result = await session.execute(stmt)
    return {row[0] for row in result.all()}


async def organization_ids_for_sirets(
    session: AsyncSession, sirets: Iterable[str]
) -> list[uuid.UUID]:
    result = await session.execute(
        select(Organization.id).where(Organization.siret.in_(list(sirets)))
    )
    return [row[0] for row in result.all()]


async def evaluate_siret(
    session: AsyncSession, values: tuple[str, ...], stream_id: uuid.UUID
) -> set[uuid.UUID]:
    if not values:
        return set()
    org_ids = await organization_ids_for_sirets(session, values)
    if not org_ids:
        return set()
    return await _ids(
        session,
        _readable_subscriptions(stream_id).where(Subscription.organization_id.in_(org_ids)),
    )


async def evaluate_organization_id(
    session: AsyncSession, values: tuple[str, ...], stream_id: uuid.UUID
) -> set[uuid.UUID]:
    org_ids = _as_uuids(values)
    if not org_ids:
        return set()
    return await _ids(
        session,
        _readable_subscriptions(stream_id).where(Subscription.organization_id.in_(org_ids)),
    )


async def evaluate_subscription_id(
    session: AsyncSession, values: tuple[str, ...], stream_id: uuid.UUID
) -> set[uuid.UUID]:
    subscription_ids = _as_uuids(values)
    if not subscription_ids:
        return set()
    return await _ids(
        session,
        _readable_subscriptions(stream_id).where(Subscription.id.in_(subscription_ids)),
    )


EVALUATORS: dict[CriterionType, Evaluator] = {
    CriterionType.SIRET: evaluate_siret,
    CriterionType.ORGANIZATION_ID: evaluate_organization_id,
    CriterionType.SUBSCRIPTION_ID: evaluate_subscription_id,
}


def evaluator_for(name: Union[str, CriterionType]) -> Evaluator:
    try:
        return EVALUATORS[CriterionType(name)]
    except ValueError:
        raise UnsupportedCriterionError(name) from None


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


async def _evaluate(
    session: AsyncSession, expression: Expression, stream_id: uuid.UUID
) -> set[uuid.UUID]:
    if isinstance(expression, AnyOf):
        result: set[uuid.UUID] = set()
        for operand in expression.operands:
            result |= await _evaluate(session, operand, stream_id)
        return result

    # Intersections stop querying at the first empty result.
    matches: Optional[set[uuid.UUID]] = None

    if isinstance(expression, AllOf):
        for operand in expression.operands:
            current = await _evaluate(session, operand, stream_id)
            matches = current if matches is None else matches & current
            if not matches:
                return set()
        return matches or set()

    if isinstance(expression, Leaf):
        for criterion, values in expression.criteria:
            current = await evaluator_for(criterion)(session, values, stream_id)
            matches = current if matches is None else matches & current
            if not matches:
                return set()
        return matches or set()

    raise TypeError(f"Unknown expression node: {expression!r}")


def _stream_id(stream: Union[DataStream, uuid.UUID]) -> uuid.UUID:
    return stream.id if isinstance(stream, DataStream) else stream


async def resolve(
    session: AsyncSession,
    criteria: Any,
    stream: Union[DataStream, uuid.UUID],
    capabilities: Optional[CriteriaCapabilities] = None,
) -> set[uuid.UUID]:
    """
    Resolve a criteria document against a stream.

    Returns the ids of readable subscriptions on the stream matching the
    criteria. Empty or missing criteria resolve to no recipients. Malformed
    criteria raise the same CriteriaError the write-time validator reports.
    Read-only; the result ordering is undefined.
    """
    expression = parse_criteria(criteria, capabilities)
    if expression is None:
        return set()
    return await _evaluate(session, expression, _stream_id(stream))


async def resolve_subscriptions(
    session: AsyncSession,
    criteria: Any,
    stream: Union[DataStream, uuid.UUID],
    capabilities: Optional[CriteriaCapabilities] = None,
) -> list[Subscription]:
    """Resolve criteria to Subscription rows, for previewing a draft's recipients."""
    ids = await resolve(session, criteria, stream, capabilities)
    if not ids:
        return []
    result = await session.execute(
        select(Subscription).where(Subscription.id.in_(ids)).order_by(Subscription.created_at)
    )
    return list(result.scalars().all())
