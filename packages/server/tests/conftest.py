"""
Shared fixtures: a fresh SQLite database per test and small factories for
organizations, streams, subscriptions and packages.
"""

import itertools

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

import streamdrop.models  # noqa: F401
from streamdrop.core.database import build_engine, get_session, init_db
from streamdrop.models.data_package import DataPackage
from streamdrop.models.data_stream import DataStream
from streamdrop.models.organization import Organization
from streamdrop.models.subscription import Subscription

_siret_counter = itertools.count(10000000000000)


def next_siret() -> str:
    return str(next(_siret_counter))


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'streamdrop.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine):
    async with AsyncSession(engine, expire_on_commit=False) as s:
        yield s


@pytest.fixture
async def client(engine):
    from streamdrop.main import app

    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _session_override():
        async with factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = _session_override
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_org(session):
    async def _make(siret: str | None = None, name: str = "Organization") -> Organization:
        org = Organization(name=name, siret=siret or next_siret())
        session.add(org)
        await session.flush()
        return org

    return _make


@pytest.fixture
def make_stream(session, make_org):
    async def _make(name: str = "Stream", owner: Organization | None = None) -> DataStream:
        owner = owner or await make_org()
        stream = DataStream(name=name, owner_organization_id=owner.id)
        session.add(stream)
        await session.flush()
        return stream

    return _make


@pytest.fixture
def make_subscription(session, make_org):
    async def _make(
        stream: DataStream,
        organization: Organization | None = None,
        can_read: bool = True,
        can_write: bool = False,
    ) -> Subscription:
        organization = organization or await make_org()
        subscription = Subscription(
            data_stream_id=stream.id,
            organization_id=organization.id,
            can_read=can_read,
            can_write=can_write,
        )
        session.add(subscription)
        await session.flush()
        return subscription

    return _make


@pytest.fixture
def make_package(session, make_org):
    async def _make(
        stream: DataStream,
        state: str = "draft",
        delivery_criteria=None,
        sender: Organization | None = None,
    ) -> DataPackage:
        sender = sender or await make_org()
        package = DataPackage(
            data_stream_id=stream.id,
            sender_organization_id=sender.id,
            state=state,
            title="Package",
            delivery_criteria=delivery_criteria,
        )
        session.add(package)
        await session.flush()
        return package

    return _make


@pytest.fixture
async def stream(make_stream):
    return await make_stream()
