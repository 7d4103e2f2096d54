from __future__ import annotations

from typing import Iterable

from models import Medicine


def _time_sort_key(time_of_day: str) -> tuple[int, int]:
    try:
        hours, minutes = (int(part) for part in time_of_day.split(":", 1))
    except ValueError:
        return (24, 0)
    return (hours, minutes)


def build_daily_schedule(medicines: Iterable[Medicine]) -> list[dict]:
    """Group medicines by time of day, earliest slot first."""
    slots: dict[str, dict] = {}
    for medicine in medicines:
        for time_of_day in medicine.time_to_take or []:
            slot = slots.setdefault(
                time_of_day,
                {"id": f"time-{time_of_day}", "time": time_of_day, "medicines": []},
            )
            slot["medicines"].append(
                {"id": medicine.id, "name": medicine.name, "dosage": medicine.dosage}
            )
    return sorted(slots.values(), key=lambda slot: _time_sort_key(slot["time"]))
