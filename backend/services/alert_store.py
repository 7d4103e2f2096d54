from __future__ import annotations

from typing import Iterable

from models import Alert, AlertType


def merge_alerts(existing: Iterable[Alert], new: Iterable[Alert]) -> list[Alert]:
    """Concatenate and dedup by id; the later write for an id wins, first position is kept."""
    merged: dict[str, Alert] = {}
    for alert in [*existing, *new]:
        merged[alert.id] = alert
    return list(merged.values())


def mark_read(alerts: Iterable[Alert], alert_id: str) -> tuple[list[Alert], bool]:
    updated: list[Alert] = []
    found = False
    for alert in alerts:
        if alert.id == alert_id:
            found = True
            alert = alert.model_copy(update={"read": True})
        updated.append(alert)
    return updated, found


def filter_by_type(alerts: Iterable[Alert], kind: AlertType | str) -> list[Alert]:
    kind = AlertType(kind)
    return [alert for alert in alerts if alert.type == kind]


def unread(alerts: Iterable[Alert]) -> list[Alert]:
    return [alert for alert in alerts if not alert.read]


def without_medicine(alerts: Iterable[Alert], medicine_id: str) -> list[Alert]:
    return [alert for alert in alerts if medicine_id not in alert.medicine_ids]
