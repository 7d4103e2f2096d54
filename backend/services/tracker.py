"""Application state for one device: medicines, alerts, household users.

The tracker is built once per app and handed to routers; persistence is the
injected ``KeyValueStore``. Mutating medicine operations do not evaluate
alerts themselves: callers invoke ``on_medicines_changed`` afterwards.

Persistence failures never reach the caller. Reads degrade to "no data",
writes are logged and leave the in-memory state as it is, and the latest
failure is kept in ``state.last_error``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from fastapi import Request
from pydantic import TypeAdapter, ValidationError

from models import Alert, AlertType, Medicine, User
from services.alert_engine import evaluate
from services.alert_store import filter_by_type, mark_read, merge_alerts, unread, without_medicine
from services.drug_interactions import find_interactions
from services.fingerprints import ProcessedFingerprints
from services.storage import (
    ACTIVE_USER_ID_KEY,
    ALERTS_KEY,
    MEDICINES_KEY,
    PROCESSED_ALERT_IDS_KEY,
    SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
    USERS_KEY,
    KeyValueStore,
    StorageError,
)

logger = logging.getLogger("medtrack.tracker")

MEDICINE_LIST = TypeAdapter(list[Medicine])
ALERT_LIST = TypeAdapter(list[Alert])
USER_LIST = TypeAdapter(list[User])

DEFAULT_USERS = [
    {"id": "1", "name": "John Doe", "email": "john.doe@example.com", "is_active": True},
    {"id": "2", "name": "Mom", "email": "mom@example.com", "is_active": False},
    {"id": "3", "name": "Dad", "email": "dad@example.com", "is_active": False},
]

Notifier = Callable[[dict], Awaitable[None]]


@dataclass
class AppState:
    medicines: list[Medicine] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)
    processed: ProcessedFingerprints = field(default_factory=ProcessedFingerprints)
    users: list[User] = field(default_factory=list)
    active_user_id: Optional[str] = None
    last_error: Optional[str] = None


class MedicineTracker:
    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], datetime] = datetime.now,
        notify: Notifier | None = None,
    ):
        self.store = store
        self.clock = clock
        self.notify = notify
        self.state = AppState()
        self._evaluating = False
        # Serializes read-modify-write of alerts and the processed set.
        self._alerts_lock = asyncio.Lock()

    # --- persistence helpers ---

    async def _read(self, key: str) -> Any:
        try:
            raw = await self.store.get(key)
        except StorageError as exc:
            logger.exception("Error loading %s", key)
            self.state.last_error = str(exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding malformed %s payload", key)
            return None

    def _decode(self, key: str, payload: Any, adapter: TypeAdapter) -> list:
        if payload is None:
            return []
        try:
            return adapter.validate_python(payload)
        except ValidationError:
            logger.warning("Discarding invalid %s records", key)
            return []

    async def _write(self, values: dict[str, Any]) -> bool:
        try:
            await self.store.set_many({key: json.dumps(value) for key, value in values.items()})
        except StorageError as exc:
            logger.exception("Error saving %s", ", ".join(values))
            self.state.last_error = str(exc)
            return False
        return True

    def _medicines_payload(self) -> list[dict]:
        return [medicine.to_json() for medicine in self.state.medicines]

    def _alerts_payload(self, alerts: list[Alert] | None = None) -> list[dict]:
        return [alert.to_json() for alert in (self.state.alerts if alerts is None else alerts)]

    def _users_payload(self) -> list[dict]:
        return [user.to_json() for user in self.state.users]

    # --- loading ---

    async def load(self):
        version = await self._read(SCHEMA_VERSION_KEY)
        if version is None:
            await self._write({SCHEMA_VERSION_KEY: SCHEMA_VERSION})
        elif not isinstance(version, int) or version > SCHEMA_VERSION:
            logger.warning("Stored schema version %r is newer than %s; decoding leniently", version, SCHEMA_VERSION)

        await self.load_medicines()
        await self.load_alerts()
        await self.load_users()

    async def load_medicines(self):
        payload = await self._read(MEDICINES_KEY)
        self.state.medicines = self._decode(MEDICINES_KEY, payload, MEDICINE_LIST)

    async def load_alerts(self):
        payload = await self._read(ALERTS_KEY)
        self.state.alerts = merge_alerts([], self._decode(ALERTS_KEY, payload, ALERT_LIST))

        processed = await self._read(PROCESSED_ALERT_IDS_KEY)
        if not isinstance(processed, list):
            if processed is not None:
                logger.warning("Discarding invalid %s records", PROCESSED_ALERT_IDS_KEY)
            processed = []
        self.state.processed = ProcessedFingerprints(item for item in processed if isinstance(item, str))

    async def load_users(self):
        users = self._decode(USERS_KEY, await self._read(USERS_KEY), USER_LIST)
        if not users:
            users = [User(**data) for data in DEFAULT_USERS]
            self.state.users = users
            await self._write({USERS_KEY: self._users_payload()})

        active_id = await self._read(ACTIVE_USER_ID_KEY)
        active = next((user for user in users if user.id == active_id), None)
        if active is None:
            active = next((user for user in users if user.is_active), users[0])
        self.state.users = [user.model_copy(update={"is_active": user.id == active.id}) for user in users]
        self.state.active_user_id = active.id

    # --- medicines ---

    @property
    def medicines(self) -> list[Medicine]:
        return list(self.state.medicines)

    def get_medicine(self, medicine_id: str) -> Medicine | None:
        return next((med for med in self.state.medicines if med.id == medicine_id), None)

    def search_medicines(self, query: str | None) -> list[Medicine]:
        needle = (query or "").strip().lower()
        if not needle:
            return self.medicines
        return [med for med in self.state.medicines if needle in med.name.lower()]

    def preview_interactions(self, name: str) -> list[str]:
        return find_interactions(name, self.state.medicines)

    async def add_medicine(self, fields: dict) -> Medicine:
        # Computed once against the medicines already present; never revisited.
        interactions = find_interactions(fields["name"], self.state.medicines)
        medicine = Medicine(
            **{
                **fields,
                "id": uuid.uuid4().hex,
                "created_at": self.clock(),
                "interactions": interactions or None,
            }
        )
        self.state.medicines = [*self.state.medicines, medicine]
        await self._write({MEDICINES_KEY: self._medicines_payload()})
        return medicine

    async def update_medicine(self, medicine_id: str, fields: dict) -> Medicine | None:
        existing = self.get_medicine(medicine_id)
        if existing is None:
            return None
        replacement = Medicine(
            **{
                "interactions": existing.interactions,
                **fields,
                "id": existing.id,
                "created_at": existing.created_at,
            }
        )
        self.state.medicines = [
            replacement if med.id == medicine_id else med for med in self.state.medicines
        ]
        await self._write({MEDICINES_KEY: self._medicines_payload()})
        return replacement

    async def delete_medicine(self, medicine_id: str) -> bool:
        async with self._alerts_lock:
            if self.get_medicine(medicine_id) is None:
                return False
            self.state.medicines = [med for med in self.state.medicines if med.id != medicine_id]
            self.state.alerts = without_medicine(self.state.alerts, medicine_id)
            processed = self.state.processed.copy()
            purged = processed.purge_medicine(medicine_id)
            self.state.processed = processed
            logger.info("Deleted medicine %s (purged %d fingerprints)", medicine_id, purged)

            await self._write(
                {
                    MEDICINES_KEY: self._medicines_payload(),
                    ALERTS_KEY: self._alerts_payload(),
                    PROCESSED_ALERT_IDS_KEY: processed.to_list(),
                }
            )
        return True

    # --- alert generation ---

    async def on_medicines_changed(self) -> list[Alert]:
        """Re-run the alert rules over the full collection.

        A call made while an evaluation is in flight is dropped, not queued.
        Alerts and the processed set are committed together; the in-memory
        state only advances once that commit succeeds. Deletes and read marks
        arriving mid-commit wait for it and apply on top of the new state.
        """
        if self._evaluating:
            logger.debug("Alert evaluation already running; dropping request")
            return []
        if not self.state.medicines:
            return []

        self._evaluating = True
        try:
            async with self._alerts_lock:
                result = evaluate(self.state.medicines, self.state.processed, self.clock())
                if not result.alerts:
                    return []

                alerts = merge_alerts(self.state.alerts, result.alerts)
                saved = await self._write(
                    {
                        ALERTS_KEY: self._alerts_payload(alerts),
                        PROCESSED_ALERT_IDS_KEY: result.processed.to_list(),
                    }
                )
                if not saved:
                    return []

                self.state.alerts = alerts
                self.state.processed = result.processed
            logger.info("Generated %d alerts", len(result.alerts))
            await self._notify_alerts(result.alerts)
            return result.alerts
        except Exception:
            logger.exception("Error generating alerts")
            return []
        finally:
            self._evaluating = False

    async def _notify_alerts(self, alerts: list[Alert]):
        if self.notify is None:
            return
        payload = {
            "event": "alerts_generated",
            "alerts": [alert.to_json() for alert in alerts],
            "timestamp": self.clock().isoformat(),
        }
        try:
            await self.notify(payload)
        except Exception:
            logger.warning("Alert broadcast failed", exc_info=True)

    # --- alerts ---

    @property
    def alerts(self) -> list[Alert]:
        return list(self.state.alerts)

    async def mark_alert_as_read(self, alert_id: str) -> bool:
        async with self._alerts_lock:
            alerts, found = mark_read(self.state.alerts, alert_id)
            if not found:
                return False
            self.state.alerts = alerts
            await self._write({ALERTS_KEY: self._alerts_payload()})
        return True

    def get_alerts(self, kind: AlertType | str | None = None, unread_only: bool = False) -> list[Alert]:
        alerts = self.state.alerts
        if kind is not None:
            alerts = filter_by_type(alerts, kind)
        if unread_only:
            alerts = unread(alerts)
        return list(alerts)

    def get_expiry_alerts(self) -> list[Alert]:
        return filter_by_type(self.state.alerts, AlertType.EXPIRY)

    def get_stock_alerts(self) -> list[Alert]:
        return filter_by_type(self.state.alerts, AlertType.STOCK)

    def get_interaction_alerts(self) -> list[Alert]:
        return filter_by_type(self.state.alerts, AlertType.INTERACTION)

    def get_reminder_alerts(self) -> list[Alert]:
        return filter_by_type(self.state.alerts, AlertType.REMINDER)

    def get_unread_alerts(self) -> list[Alert]:
        return unread(self.state.alerts)

    # --- users ---

    @property
    def users(self) -> list[User]:
        return list(self.state.users)

    @property
    def active_user(self) -> User | None:
        return next((user for user in self.state.users if user.id == self.state.active_user_id), None)

    def get_user(self, user_id: str) -> User | None:
        return next((user for user in self.state.users if user.id == user_id), None)

    async def add_user(self, fields: dict) -> User:
        user = User(**{**fields, "id": uuid.uuid4().hex, "is_active": False})
        self.state.users = [*self.state.users, user]
        await self._write({USERS_KEY: self._users_payload()})
        return user

    async def update_user(self, user_id: str, fields: dict) -> User | None:
        existing = self.get_user(user_id)
        if existing is None:
            return None
        replacement = User(**{**fields, "id": existing.id, "is_active": existing.is_active})
        self.state.users = [replacement if user.id == user_id else user for user in self.state.users]
        await self._write({USERS_KEY: self._users_payload()})
        return replacement

    async def delete_user(self, user_id: str) -> bool:
        if len(self.state.users) <= 1 or self.get_user(user_id) is None:
            return False

        remaining = [user for user in self.state.users if user.id != user_id]
        if self.state.active_user_id != user_id:
            self.state.users = remaining
            await self._write({USERS_KEY: self._users_payload()})
            return True

        new_active = remaining[0]
        self.state.users = [
            user.model_copy(update={"is_active": user.id == new_active.id}) for user in remaining
        ]
        self.state.active_user_id = new_active.id
        await self._write({USERS_KEY: self._users_payload(), ACTIVE_USER_ID_KEY: new_active.id})
        return True

    async def set_active_user(self, user_id: str) -> User | None:
        if self.get_user(user_id) is None:
            return None
        self.state.users = [
            user.model_copy(update={"is_active": user.id == user_id}) for user in self.state.users
        ]
        self.state.active_user_id = user_id
        await self._write({USERS_KEY: self._users_payload(), ACTIVE_USER_ID_KEY: user_id})
        return self.active_user


def get_tracker(request: Request) -> MedicineTracker:
    return request.app.state.tracker
