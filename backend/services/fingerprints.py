"""Deterministic alert fingerprints and the set of fingerprints already raised.

A fingerprint encodes the alert kind, its subject medicine(s) and a discretized
severity bucket, so re-evaluating an unchanged condition yields the same id and
is suppressed.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Iterator

from models import AlertType


def expiry_fingerprint(medicine_id: str, days_until_expiry: int) -> str:
    return f"{AlertType.EXPIRY.value}:{medicine_id}:{days_until_expiry}"


def stock_fingerprint(medicine_id: str, percent_bucket: int) -> str:
    return f"{AlertType.STOCK.value}:{medicine_id}:{percent_bucket}"


def pair_key(first_id: str, second_id: str) -> str:
    return ":".join(sorted((first_id, second_id)))


def interaction_fingerprint(first_id: str, second_id: str) -> str:
    return f"{AlertType.INTERACTION.value}:{pair_key(first_id, second_id)}"


def reminder_fingerprint(medicine_id: str, time_of_day: str, day: date) -> str:
    return f"{AlertType.REMINDER.value}:{medicine_id}:{time_of_day}:{day.isoformat()}"


class ProcessedFingerprints:
    """Fingerprints that have been surfaced at least once."""

    def __init__(self, fingerprints: Iterable[str] = ()):
        self._ids: set[str] = set(fingerprints)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def copy(self) -> "ProcessedFingerprints":
        return ProcessedFingerprints(self._ids)

    def mark(self, fingerprint: str) -> bool:
        """Record a fingerprint; False when it was already processed."""
        if fingerprint in self._ids:
            return False
        self._ids.add(fingerprint)
        return True

    def purge_medicine(self, medicine_id: str) -> int:
        # Substring match: may drop an unrelated fingerprint whose
        # ids happen to contain this one, never keeps one that references it.
        stale = {fingerprint for fingerprint in self._ids if medicine_id in fingerprint}
        self._ids -= stale
        return len(stale)

    def to_list(self) -> list[str]:
        return sorted(self._ids)
