#!/usr/bin/env python3
"""Load provisioning snapshots from a JSON file into the database.

The file holds a JSON array of objects in the ``POST /snapshots`` shape
(``account_id``, ``request_id``, ``requested_at``, ``payload`` ...).
Snapshots already stored under the same request id are replaced.

Usage:
    python scripts/seed_snapshots.py snapshots.json
"""

import asyncio
import json
import sys
from pathlib import Path

from deployment_assistant.common.config import get_settings
from deployment_assistant.common.database import DatabaseManager
from deployment_assistant.snapshots.schemas import SnapshotCreate
from deployment_assistant.snapshots.service import SnapshotService


async def seed_snapshots(path: Path) -> None:
    items = json.loads(path.read_text(encoding="utf-8"))
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    svc = SnapshotService(settings)

    async with db.get_session() as session:
        for item in items:
            body = SnapshotCreate.model_validate(item)
            await svc.ingest_snapshot(
                session, body.account_id, body.request_id, body.requested_at,
                payload=body.payload,
                account_name=body.account_name,
                request_name=body.request_name,
                request_type=body.request_type,
                status=body.status,
            )
            print(f"  [stored] {body.request_id} ({body.account_id})")

    await db.close()
    print(f"\nDone. {len(items)} snapshots loaded.")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(seed_snapshots(Path(sys.argv[1])))
