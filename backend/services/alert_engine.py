"""Alert rule evaluator.

Runs four independent passes (expiry, stock, interaction, reminder) over the
whole medicine collection. Each candidate alert carries a fingerprint; those
already in the processed set are skipped, the rest are returned together with
the updated set.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Sequence

from models import Alert, AlertType, Medicine
from services.dosage import estimate_daily_usage
from services.drug_interactions import interacts
from services.fingerprints import (
    ProcessedFingerprints,
    expiry_fingerprint,
    interaction_fingerprint,
    reminder_fingerprint,
    stock_fingerprint,
)

logger = logging.getLogger("medtrack.alerts")

EXPIRY_WINDOW_DAYS = int(os.getenv("MEDTRACK_EXPIRY_WINDOW_DAYS", "30"))
LOW_STOCK_PERCENT = float(os.getenv("MEDTRACK_LOW_STOCK_PERCENT", "20"))
REMINDER_WINDOW = timedelta(minutes=int(os.getenv("MEDTRACK_REMINDER_WINDOW_MINUTES", "60")))


@dataclass
class EvaluationResult:
    alerts: list[Alert] = field(default_factory=list)
    processed: ProcessedFingerprints = field(default_factory=ProcessedFingerprints)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def days_until_expiry(expiry_date: date, now: datetime) -> int:
    delta = datetime.combine(expiry_date, time.min) - now
    return math.ceil(delta.total_seconds() / 86400)


def estimate_waste(current_quantity: float, daily_usage: float, days_left: int) -> int:
    """Units left unused at expiry, never negative."""
    return max(0, round_half_up(current_quantity - daily_usage * days_left))


def _units(amount: int) -> str:
    return "unit" if amount == 1 else "units"


def _expiry_alert(medicine: Medicine, days_left: int, now: datetime, fingerprint: str) -> Alert:
    daily_usage = estimate_daily_usage(medicine.frequency)
    days_of_supply = medicine.current_quantity / daily_usage
    waste = estimate_waste(medicine.current_quantity, daily_usage, days_left) if days_left < days_of_supply else 0

    if waste > 0:
        title = "Medicine Will Expire Before Use"
        description = (
            f"{medicine.name} will expire in {days_left} days. "
            f"Approximately {waste} {_units(waste)} will be wasted."
        )
    else:
        title = "Medicine Expiring Soon"
        description = f"{medicine.name} will expire in {days_left} days."

    return Alert(
        id=fingerprint,
        type=AlertType.EXPIRY,
        title=title,
        description=description,
        medicine_ids=[medicine.id],
        created_at=now,
    )


def expiry_pass(medicines: Sequence[Medicine], processed: ProcessedFingerprints, now: datetime) -> list[Alert]:
    alerts: list[Alert] = []
    for medicine in medicines:
        days_left = days_until_expiry(medicine.expiry_date, now)
        if not 0 < days_left <= EXPIRY_WINDOW_DAYS:
            continue
        fingerprint = expiry_fingerprint(medicine.id, days_left)
        if not processed.mark(fingerprint):
            continue
        alerts.append(_expiry_alert(medicine, days_left, now, fingerprint))
    return alerts


def stock_pass(medicines: Sequence[Medicine], processed: ProcessedFingerprints, now: datetime) -> list[Alert]:
    alerts: list[Alert] = []
    for medicine in medicines:
        if medicine.total_quantity <= 0:
            continue
        percent = medicine.current_quantity / medicine.total_quantity * 100
        if percent > LOW_STOCK_PERCENT:
            continue
        bucket = round_half_up(percent)
        fingerprint = stock_fingerprint(medicine.id, bucket)
        if not processed.mark(fingerprint):
            continue
        alerts.append(
            Alert(
                id=fingerprint,
                type=AlertType.STOCK,
                title="Medicine Running Low",
                description=f"{medicine.name} is running low ({bucket}% remaining).",
                medicine_ids=[medicine.id],
                created_at=now,
            )
        )
    return alerts


def interaction_pass(medicines: Sequence[Medicine], processed: ProcessedFingerprints, now: datetime) -> list[Alert]:
    alerts: list[Alert] = []
    for index, first in enumerate(medicines):
        for second in medicines[index + 1:]:
            if first.id == second.id or not interacts(first.name, second.name):
                continue
            fingerprint = interaction_fingerprint(first.id, second.id)
            if not processed.mark(fingerprint):
                continue
            alerts.append(
                Alert(
                    id=fingerprint,
                    type=AlertType.INTERACTION,
                    title="Medicine Interaction Warning",
                    description=(
                        f"{first.name} and {second.name} may interact with each other. "
                        "Please consult your doctor."
                    ),
                    medicine_ids=[first.id, second.id],
                    created_at=now,
                )
            )
    return alerts


def _reminder_instant(time_of_day: str, now: datetime) -> datetime | None:
    try:
        parsed = datetime.strptime(time_of_day.strip(), "%H:%M")
    except ValueError:
        return None
    return datetime.combine(now.date(), parsed.time())


def reminder_pass(medicines: Sequence[Medicine], processed: ProcessedFingerprints, now: datetime) -> list[Alert]:
    alerts: list[Alert] = []
    for medicine in medicines:
        for time_of_day in medicine.time_to_take or []:
            reminder_at = _reminder_instant(time_of_day, now)
            if reminder_at is None:
                logger.warning("Skipping unparsable reminder time %r for medicine %s", time_of_day, medicine.id)
                continue
            if now < reminder_at or now - reminder_at > REMINDER_WINDOW:
                continue
            fingerprint = reminder_fingerprint(medicine.id, time_of_day.strip(), now.date())
            if not processed.mark(fingerprint):
                continue
            alerts.append(
                Alert(
                    id=fingerprint,
                    type=AlertType.REMINDER,
                    title="Time to Take Medicine",
                    description=f"It's time to take {medicine.name} ({medicine.dosage}).",
                    medicine_ids=[medicine.id],
                    created_at=now,
                )
            )
    return alerts


RULE_PASSES = (expiry_pass, stock_pass, interaction_pass, reminder_pass)


def evaluate(
    medicines: Sequence[Medicine],
    already_processed: ProcessedFingerprints,
    now: datetime | None = None,
) -> EvaluationResult:
    """Produce newly triggered alerts; the input set is left untouched."""
    now = now or datetime.now()
    processed = already_processed.copy()
    result = EvaluationResult(processed=processed)
    for rule_pass in RULE_PASSES:
        result.alerts.extend(rule_pass(medicines, processed, now))
    return result
