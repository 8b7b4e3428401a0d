"""
Transmission saga tests: end-to-end scenarios, idempotent notification
materialization, compensation after a lost race and storage failures.
"""

import uuid

import pytest
from sqlalchemy import update

from streamdrop.core.criteria import UnsupportedCriterionError
from streamdrop.models.data_package import DataPackage
from streamdrop.services import criteria as criteria_service
from streamdrop.services import transmission
from streamdrop.services.notifications import (
    count_notifications,
    create_notifications,
    notified_subscription_ids,
)
from streamdrop.services.transmission import transmit
from streamdrop_shared.schemas.common import PackageState, TransmissionError

SIRET = "13002526500013"


@pytest.fixture
async def recipient(stream, make_org, make_subscription):
    org = await make_org(siret=SIRET)
    return await make_subscription(stream, org)


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_transmit_to_matching_subscription(session, stream, recipient, make_package):
    package = await make_package(stream, delivery_criteria={"siret": [SIRET]})

    result = await transmit(session, package, attachments_complete=True)

    assert result.success is True
    assert result.error is None
    assert result.target_subscription_ids == {recipient.id}
    assert package.state == PackageState.TRANSMITTED.value
    assert package.sent_at is not None
    assert await notified_subscription_ids(session, package.id) == {recipient.id}


@pytest.mark.asyncio
async def test_write_only_subscription_is_no_recipient(
    session, stream, make_org, make_subscription, make_package
):
    org = await make_org(siret=SIRET)
    await make_subscription(stream, org, can_read=False, can_write=True)
    package = await make_package(stream, delivery_criteria={"siret": [SIRET]})

    result = await transmit(session, package, attachments_complete=True)

    assert result.success is False
    assert result.error == TransmissionError.NO_RECIPIENTS
    assert package.state == PackageState.DRAFT.value
    assert await count_notifications(session, package.id) == 0


@pytest.mark.asyncio
async def test_already_transmitted_package(session, stream, recipient, make_package):
    package = await make_package(stream, state="transmitted", delivery_criteria={"siret": SIRET})

    result = await transmit(session, package, attachments_complete=True)

    assert result.success is False
    assert result.error == TransmissionError.NOT_DRAFT
    assert package.state == PackageState.TRANSMITTED.value
    assert await count_notifications(session, package.id) == 0


@pytest.mark.asyncio
async def test_union_reaches_subscriber_once(session, stream, make_org, make_subscription, make_package):
    org2 = await make_org(siret="12345678900011")
    subscription = await make_subscription(stream, org2)
    package = await make_package(
        stream,
        delivery_criteria={"_or": [{"siret": "12345678900011"}, {"organization_id": str(org2.id)}]},
    )

    result = await transmit(session, package, attachments_complete=True)

    assert result.success is True
    assert result.target_subscription_ids == {subscription.id}
    assert await count_notifications(session, package.id) == 1


@pytest.mark.asyncio
async def test_incomplete_attachments(session, stream, recipient, make_package):
    package = await make_package(stream, delivery_criteria={"siret": SIRET})

    result = await transmit(session, package, attachments_complete=False)

    assert result.error == TransmissionError.NO_COMPLETED_ATTACHMENTS
    assert package.state == PackageState.DRAFT.value


@pytest.mark.asyncio
async def test_attachment_collaborator_is_consulted(
    session, stream, recipient, make_package, monkeypatch
):
    package = await make_package(stream, delivery_criteria={"siret": SIRET})
    monkeypatch.setattr(transmission, "has_completed_attachments", lambda pkg: True)

    result = await transmit(session, package)

    assert result.success is True


@pytest.mark.asyncio
@pytest.mark.parametrize("criteria", [None, {}])
async def test_missing_criteria_means_no_recipients(session, stream, recipient, make_package, criteria):
    package = await make_package(stream, delivery_criteria=criteria)

    result = await transmit(session, package, attachments_complete=True)

    assert result.error == TransmissionError.NO_RECIPIENTS
    assert package.state == PackageState.DRAFT.value


@pytest.mark.asyncio
async def test_malformed_criteria_raise(session, stream, recipient, make_package):
    package = await make_package(stream, delivery_criteria={"email": "ops@example.com"})

    with pytest.raises(UnsupportedCriterionError):
        await transmit(session, package, attachments_complete=True)
    assert package.state == PackageState.DRAFT.value


# ---------------------------------------------------------------------------
# Notification step
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_notifications_is_idempotent(session, stream, recipient, make_subscription, make_package):
    package = await make_package(stream)
    second = await make_subscription(stream)

    first_run = await create_notifications(session, package.id, {recipient.id})
    second_run = await create_notifications(session, package.id, {recipient.id, second.id})
    third_run = await create_notifications(session, package.id, {recipient.id, second.id})

    assert len(first_run) == 1
    assert [n.subscription_id for n in second_run] == [second.id]
    assert third_run == []
    assert await count_notifications(session, package.id) == 2


# ---------------------------------------------------------------------------
# Compensation
# ---------------------------------------------------------------------------


def lose_race_after_resolution(monkeypatch, package):
    """Make a competing transmission commit between resolution and the state change."""
    real_resolve = criteria_service.resolve

    async def resolve_then_lose_race(session_, criteria, stream_id, capabilities=None):
        ids = await real_resolve(session_, criteria, stream_id, capabilities)
        await session_.execute(
            update(DataPackage)
            .where(DataPackage.id == package.id)
            .values(state="transmitted")
            .execution_options(synchronize_session=False)
        )
        return ids

    monkeypatch.setattr(transmission, "resolve", resolve_then_lose_race)


@pytest.mark.asyncio
async def test_lost_race_removes_notifications(session, stream, recipient, make_package, monkeypatch):
    package = await make_package(stream, delivery_criteria={"siret": SIRET})
    lose_race_after_resolution(monkeypatch, package)

    result = await transmit(session, package, attachments_complete=True)

    assert result.success is False
    assert result.error == TransmissionError.NOT_DRAFT
    assert await count_notifications(session, package.id) == 0


@pytest.mark.asyncio
async def test_lost_race_reports_stored_state(session, stream, recipient, make_package, monkeypatch):
    package = await make_package(stream, delivery_criteria={"siret": SIRET})
    lose_race_after_resolution(monkeypatch, package)

    result = await transmit(session, package, attachments_complete=True)

    assert result.error == TransmissionError.NOT_DRAFT
    assert result.package.state == PackageState.TRANSMITTED.value


@pytest.mark.asyncio
async def test_compensation_keeps_earlier_notifications(
    session, stream, recipient, make_subscription, make_package, monkeypatch
):
    second = await make_subscription(stream)
    package = await make_package(
        stream,
        delivery_criteria={"_or": [{"siret": SIRET}, {"subscription_id": str(second.id)}]},
    )
    await create_notifications(session, package.id, {recipient.id})
    lose_race_after_resolution(monkeypatch, package)

    result = await transmit(session, package, attachments_complete=True)

    assert result.error == TransmissionError.NOT_DRAFT
    assert result.target_subscription_ids == {recipient.id, second.id}
    assert await notified_subscription_ids(session, package.id) == {recipient.id}


@pytest.mark.asyncio
async def test_constraint_violation_is_reported(session, stream, recipient, make_package, monkeypatch):
    package = await make_package(stream, delivery_criteria={"siret": SIRET})
    await session.commit()
    ghost = uuid.uuid4()

    async def resolve_to_missing_subscription(session_, criteria, stream_id, capabilities=None):
        return {recipient.id, ghost}

    monkeypatch.setattr(transmission, "resolve", resolve_to_missing_subscription)

    result = await transmit(session, package, attachments_complete=True)

    assert result.success is False
    assert result.error == TransmissionError.CONSTRAINT_VIOLATION
    assert package.state == PackageState.DRAFT.value
    assert await count_notifications(session, package.id) == 0
