"""Key-value persistence for the tracker's collections.

Every collection (medicines, alerts, processed fingerprints, users) is stored
as one JSON document under a fixed key in the ``keyvalueentry`` table.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from sqlalchemy.engine import Engine
from sqlmodel import Session

from models import KeyValueEntry

logger = logging.getLogger("medtrack.storage")

MEDICINES_KEY = "medicines"
ALERTS_KEY = "alerts"
PROCESSED_ALERT_IDS_KEY = "processedAlertIds"
USERS_KEY = "users"
ACTIVE_USER_ID_KEY = "activeUserId"
SCHEMA_VERSION_KEY = "schemaVersion"

SCHEMA_VERSION = 1


class StorageError(Exception):
    """Raised when the backing store cannot be read or written."""


class KeyValueStore:
    def __init__(self, engine: Engine):
        self.engine = engine

    def _get(self, key: str) -> str | None:
        with Session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry else None

    def _set_many(self, values: dict[str, str]) -> None:
        now = datetime.now(timezone.utc)
        with Session(self.engine) as session:
            try:
                for key, value in values.items():
                    entry = session.get(KeyValueEntry, key)
                    if entry is None:
                        entry = KeyValueEntry(key=key, value=value, updated_at=now)
                    else:
                        entry.value = value
                        entry.updated_at = now
                    session.add(entry)
                session.commit()
            except Exception:
                session.rollback()
                raise

    async def get(self, key: str) -> str | None:
        try:
            return await asyncio.to_thread(self._get, key)
        except Exception as exc:
            raise StorageError(f"Failed to read '{key}'") from exc

    async def set(self, key: str, value: str) -> None:
        await self.set_many({key: value})

    async def set_many(self, values: dict[str, str]) -> None:
        """Write all keys in one transaction: either every value lands or none does."""
        if not values:
            return
        try:
            await asyncio.to_thread(self._set_many, values)
        except Exception as exc:
            keys = ", ".join(sorted(values))
            raise StorageError(f"Failed to write {keys}") from exc
