"""
Resolver tests: evaluators, boolean composition, stream scoping and the
read-permission filter, against a real (SQLite) database.
"""

import uuid

import pytest

from streamdrop.core.criteria import (
    CriteriaCapabilities,
    ExpressionTooDeepError,
    NotAHashError,
    UnknownOperatorError,
    UnsupportedCriterionError,
)
from streamdrop.services.criteria import (
    evaluate_organization_id,
    evaluate_siret,
    evaluate_subscription_id,
    evaluator_for,
    resolve,
    resolve_subscriptions,
)
from streamdrop_shared.schemas.common import CriterionType

SIRET_A = "13002526500013"
SIRET_B = "11000601200010"


@pytest.fixture
async def world(stream, make_org, make_subscription, make_stream):
    """Three readable subscribers, one write-only subscriber, and a second stream."""
    org_a = await make_org(siret=SIRET_A)
    org_b = await make_org(siret=SIRET_B)
    org_c = await make_org()
    org_w = await make_org()

    sub_a = await make_subscription(stream, org_a)
    sub_b = await make_subscription(stream, org_b)
    sub_c = await make_subscription(stream, org_c)
    sub_w = await make_subscription(stream, org_w, can_read=False, can_write=True)

    other_stream = await make_stream(name="Other")
    other_a = await make_subscription(other_stream, org_a)

    return {
        "stream": stream,
        "other_stream": other_stream,
        "orgs": {"a": org_a, "b": org_b, "c": org_c, "w": org_w},
        "subs": {"a": sub_a, "b": sub_b, "c": sub_c, "w": sub_w, "other_a": other_a},
    }


# ---------------------------------------------------------------------------
# Evaluators
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_evaluate_siret(session, world):
    ids = await evaluate_siret(session, (SIRET_A, SIRET_B), world["stream"].id)
    assert ids == {world["subs"]["a"].id, world["subs"]["b"].id}


@pytest.mark.asyncio
async def test_evaluate_siret_unknown_value(session, world):
    assert await evaluate_siret(session, ("99999999999999",), world["stream"].id) == set()
    assert await evaluate_siret(session, (), world["stream"].id) == set()


@pytest.mark.asyncio
async def test_evaluate_organization_id(session, world):
    org_c = world["orgs"]["c"]
    ids = await evaluate_organization_id(session, (str(org_c.id),), world["stream"].id)
    assert ids == {world["subs"]["c"].id}


@pytest.mark.asyncio
async def test_evaluate_organization_id_skips_malformed(session, world):
    org_c = world["orgs"]["c"]
    ids = await evaluate_organization_id(
        session, ("not-a-uuid", str(org_c.id)), world["stream"].id
    )
    assert ids == {world["subs"]["c"].id}
    assert await evaluate_organization_id(session, ("nope",), world["stream"].id) == set()


@pytest.mark.asyncio
async def test_evaluate_subscription_id_is_scoped_to_stream(session, world):
    subs = world["subs"]
    ids = await evaluate_subscription_id(
        session, (str(subs["a"].id), str(subs["other_a"].id)), world["stream"].id
    )
    assert ids == {subs["a"].id}


@pytest.mark.asyncio
async def test_evaluators_skip_write_only_subscriptions(session, world):
    org_w = world["orgs"]["w"]
    sub_w = world["subs"]["w"]
    stream_id = world["stream"].id
    assert await evaluate_organization_id(session, (str(org_w.id),), stream_id) == set()
    assert await evaluate_subscription_id(session, (str(sub_w.id),), stream_id) == set()


def test_evaluator_registry():
    assert evaluator_for("siret") is evaluate_siret
    assert evaluator_for(CriterionType.SUBSCRIPTION_ID) is evaluate_subscription_id
    with pytest.raises(UnsupportedCriterionError):
        evaluator_for("email")


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_empty_criteria_resolve_to_nothing(session, world):
    stream = world["stream"]
    assert await resolve(session, None, stream) == set()
    assert await resolve(session, {}, stream) == set()


@pytest.mark.asyncio
async def test_accepts_stream_or_id(session, world):
    criteria = {"siret": SIRET_A}
    by_row = await resolve(session, criteria, world["stream"])
    by_id = await resolve(session, criteria, world["stream"].id)
    assert by_row == by_id == {world["subs"]["a"].id}


@pytest.mark.asyncio
async def test_resolution_is_scoped_to_stream(session, world):
    ids = await resolve(session, {"siret": SIRET_A}, world["other_stream"])
    assert ids == {world["subs"]["other_a"].id}


@pytest.mark.asyncio
async def test_union_law(session, world):
    stream = world["stream"]
    a = {"siret": SIRET_A}
    b = {"organization_id": str(world["orgs"]["c"].id)}
    combined = await resolve(session, {"_or": [a, b]}, stream)
    assert combined == (await resolve(session, a, stream)) | (await resolve(session, b, stream))
    assert combined == {world["subs"]["a"].id, world["subs"]["c"].id}


@pytest.mark.asyncio
async def test_intersection_law(session, world):
    stream = world["stream"]
    a = {"siret": [SIRET_A, SIRET_B]}
    b = {"subscription_id": [str(world["subs"]["b"].id), str(world["subs"]["c"].id)]}
    combined = await resolve(session, {"_and": [a, b]}, stream)
    assert combined == (await resolve(session, a, stream)) & (await resolve(session, b, stream))
    assert combined == {world["subs"]["b"].id}


@pytest.mark.asyncio
async def test_disjoint_intersection_is_empty(session, world):
    criteria = {"_and": [{"siret": SIRET_A}, {"siret": SIRET_B}]}
    assert await resolve(session, criteria, world["stream"]) == set()


@pytest.mark.asyncio
async def test_implicit_and_within_a_leaf(session, world):
    stream = world["stream"]
    org_a = world["orgs"]["a"]
    matching = {"siret": SIRET_A, "organization_id": str(org_a.id)}
    assert await resolve(session, matching, stream) == {world["subs"]["a"].id}

    conflicting = {"siret": SIRET_A, "organization_id": str(world["orgs"]["b"].id)}
    assert await resolve(session, conflicting, stream) == set()


@pytest.mark.asyncio
async def test_nested_expression(session, world):
    subs = world["subs"]
    criteria = {
        "_or": [
            {"_and": [{"siret": [SIRET_A, SIRET_B]}, {"subscription_id": str(subs["a"].id)}]},
            {"organization_id": str(world["orgs"]["c"].id)},
        ]
    }
    assert await resolve(session, criteria, world["stream"]) == {subs["a"].id, subs["c"].id}


@pytest.mark.asyncio
async def test_union_is_deduplicated(session, make_org, make_subscription, stream):
    org2 = await make_org(siret="12345678900011")
    subscription = await make_subscription(stream, org2)
    criteria = {"_or": [{"siret": "12345678900011"}, {"organization_id": str(org2.id)}]}

    ids = await resolve(session, criteria, stream)
    assert ids == {subscription.id}


@pytest.mark.asyncio
async def test_results_only_readable_subscriptions(session, world):
    every_org = [str(org.id) for org in world["orgs"].values()]
    ids = await resolve(session, {"organization_id": every_org}, world["stream"])
    assert world["subs"]["w"].id not in ids
    assert len(ids) == 3


@pytest.mark.asyncio
async def test_empty_leaf_inside_operator(session, world):
    ids = await resolve(session, {"_or": [{}, {"siret": SIRET_A}]}, world["stream"])
    assert ids == {world["subs"]["a"].id}


@pytest.mark.asyncio
async def test_resolve_subscriptions_returns_rows(session, world):
    rows = await resolve_subscriptions(session, {"siret": [SIRET_A, SIRET_B]}, world["stream"])
    assert {row.id for row in rows} == {world["subs"]["a"].id, world["subs"]["b"].id}
    assert await resolve_subscriptions(session, None, world["stream"]) == []


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_malformed_criteria_raise(session, stream):
    with pytest.raises(NotAHashError):
        await resolve(session, ["siret"], stream)
    with pytest.raises(UnknownOperatorError):
        await resolve(session, {"_nor": [{"siret": SIRET_A}]}, stream)
    with pytest.raises(UnsupportedCriterionError):
        await resolve(session, {"email": "ops@example.com"}, stream)


@pytest.mark.asyncio
async def test_too_deep_raises(session, stream):
    criteria = {"_or": [{"_or": [{"_or": [{"siret": SIRET_A}]}]}]}
    with pytest.raises(ExpressionTooDeepError):
        await resolve(session, criteria, stream)


@pytest.mark.asyncio
async def test_capabilities_restrict_resolution(session, world):
    caps = CriteriaCapabilities.v1()
    assert await resolve(session, {"siret": SIRET_A}, world["stream"], caps) == {
        world["subs"]["a"].id
    }
    with pytest.raises(UnsupportedCriterionError):
        await resolve(session, {"subscription_id": str(uuid.uuid4())}, world["stream"], caps)
