#!/usr/bin/env python3
"""Seed a development database with organizations, a data stream, its subscriptions and draft packages.

Usage:
    python scripts/seed_dev_data.py

Reads STREAMDROP_DATABASE_URL (or defaults to localhost). Tables are created
if missing; re-running is a no-op.
"""

import asyncio
import uuid

from streamdrop.core.database import async_session_factory, engine, init_db
from streamdrop.models.data_package import DataPackage
from streamdrop.models.data_stream import DataStream
from streamdrop.models.organization import Organization
from streamdrop.models.subscription import Subscription

# Deterministic UUIDs for reproducibility
ORG_IDS = [uuid.UUID(f"00000000-0000-0000-0000-0000000000{i:02d}") for i in range(1, 5)]
STREAM_ID = uuid.UUID("00000000-0000-0000-0000-000000000100")
SUBSCRIPTION_IDS = [uuid.UUID(f"00000000-0000-0000-0000-0000000002{i:02d}") for i in range(3)]
PACKAGE_IDS = [uuid.UUID(f"00000000-0000-0000-0000-0000000003{i:02d}") for i in range(2)]

ORGS = [
    ("Direction Générale des Finances", "11000601200010"),
    ("Ministère de l'Intérieur", "11000901500016"),
    ("Acme Logistique", "13002526500013"),
    ("Transports Martin", "41933297600026"),
]


async def seed():
    await init_db()

    async with async_session_factory() as session:
        if await session.get(DataStream, STREAM_ID):
            print("Development data already present.")
            await engine.dispose()
            return

        for oid, (name, siret) in zip(ORG_IDS, ORGS):
            session.add(Organization(id=oid, name=name, siret=siret))
        await session.flush()

        session.add(
            DataStream(
                id=STREAM_ID,
                name="Factures",
                description="Invoices published by the finance directorate",
                owner_organization_id=ORG_IDS[0],
            )
        )
        await session.flush()

        # Orgs 1-2 read, org 3 only writes and never receives packages
        permissions = [(ORG_IDS[1], True, False), (ORG_IDS[2], True, True), (ORG_IDS[3], False, True)]
        for sid, (oid, can_read, can_write) in zip(SUBSCRIPTION_IDS, permissions):
            session.add(
                Subscription(
                    id=sid,
                    data_stream_id=STREAM_ID,
                    organization_id=oid,
                    can_read=can_read,
                    can_write=can_write,
                )
            )
        await session.flush()

        packages = [
            ("Factures-Q1", {"siret": [ORGS[2][1]]}),
            ("Factures-Q2", {"_or": [{"siret": ORGS[2][1]}, {"organization_id": str(ORG_IDS[1])}]}),
        ]
        for pid, (title, criteria) in zip(PACKAGE_IDS, packages):
            session.add(
                DataPackage(
                    id=pid,
                    data_stream_id=STREAM_ID,
                    sender_organization_id=ORG_IDS[0],
                    title=title,
                    delivery_criteria=criteria,
                )
            )

        await session.commit()

    await engine.dispose()
    print(f"Seeded stream '{STREAM_ID}' with 4 organizations, 3 subscriptions, 2 draft packages.")


if __name__ == "__main__":
    asyncio.run(seed())
