import asyncio
import logging
import os
from datetime import date, timedelta

from database import engine, create_db
import models  # noqa: F401 - registers tables before create_db
from services.storage import KeyValueStore
from services.tracker import MedicineTracker

logger = logging.getLogger("medtrack.seed")


def demo_medicines(today: date | None = None) -> list[dict]:
    today = today or date.today()
    return [
        {
            "name": "Aspirin",
            "dosage": "75mg",
            "frequency": "Once daily",
            "total_quantity": 30,
            "current_quantity": 24,
            "expiry_date": today + timedelta(days=180),
            "time_to_take": ["08:00"],
        },
        {
            "name": "Warfarin",
            "dosage": "2mg",
            "frequency": "Once daily",
            "total_quantity": 28,
            "current_quantity": 20,
            "expiry_date": today + timedelta(days=240),
            "time_to_take": ["20:00"],
        },
        {
            "name": "Amoxicillin",
            "dosage": "500mg",
            "frequency": "Three times a day",
            "total_quantity": 21,
            "current_quantity": 3,
            "expiry_date": today + timedelta(days=90),
            "time_to_take": ["08:00", "14:00", "20:00"],
        },
        {
            "name": "Levothyroxine",
            "dosage": "50mcg",
            "frequency": "Once daily",
            "total_quantity": 90,
            "current_quantity": 60,
            "expiry_date": today + timedelta(days=12),
            "notes": "Take on an empty stomach",
            "time_to_take": ["07:00"],
        },
        {
            "name": "Vitamin D",
            "dosage": "1000 IU",
            "frequency": "Weekly",
            "total_quantity": 12,
            "current_quantity": 10,
            "expiry_date": today + timedelta(days=365),
        },
    ]


async def seed_medicines(store: KeyValueStore) -> int:
    tracker = MedicineTracker(store)
    await tracker.load()
    existing = {medicine.name.casefold() for medicine in tracker.medicines}

    added = 0
    for data in demo_medicines():
        if data["name"].casefold() in existing:
            continue
        await tracker.add_medicine(data)
        added += 1

    await tracker.on_medicines_changed()
    return added


def run_seed():
    create_db()
    store = KeyValueStore(engine)
    if os.getenv("MEDTRACK_SEED_MEDICINES", "1") == "0":
        tracker = MedicineTracker(store)
        asyncio.run(tracker.load())
        logger.info("Seeded household users only")
        return

    added = asyncio.run(seed_medicines(store))
    logger.info("Seeded %d demo medicines", added)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_seed()
