import json
import os
import sqlite3
import subprocess
import sys
from pathlib import Path


BACKEND_DIR = Path(__file__).resolve().parents[1]
SEED_SCRIPT = BACKEND_DIR / "seed.py"

EXPECTED_MEDICINES = {
    "Aspirin",
    "Warfarin",
    "Amoxicillin",
    "Levothyroxine",
    "Vitamin D",
}

EXPECTED_USERS = {
    "john.doe@example.com",
    "mom@example.com",
    "dad@example.com",
}


def _run_seed(db_file: Path, seed_medicines: str = "1"):
    env = os.environ.copy()
    env["MEDTRACK_DB_FILE"] = str(db_file)
    env["MEDTRACK_SEED_MEDICINES"] = seed_medicines
    run = subprocess.run(
        [sys.executable, str(SEED_SCRIPT)],
        cwd=str(BACKEND_DIR),
        env=env,
        capture_output=True,
        text=True,
        check=False,
    )
    assert run.returncode == 0, f"seed.py failed\nSTDOUT:\n{run.stdout}\nSTDERR:\n{run.stderr}"


def _read_values(db_file: Path) -> dict:
    with sqlite3.connect(db_file) as conn:
        rows = conn.execute("SELECT key, value FROM keyvalueentry").fetchall()
    return {key: json.loads(value) for key, value in rows}


def test_seed_is_idempotent_for_demo_medicines_and_users(tmp_path):
    db_file = tmp_path / "seed-idempotent.db"

    _run_seed(db_file)
    _run_seed(db_file)

    values = _read_values(db_file)
    medicines = [medicine["name"] for medicine in values["medicines"]]
    users = [user["email"] for user in values["users"]]

    assert sorted(medicines) == sorted(EXPECTED_MEDICINES)
    assert set(users) == EXPECTED_USERS and len(users) == len(EXPECTED_USERS)
    assert values["schemaVersion"] == 1

    alert_ids = {alert["id"] for alert in values["alerts"]}
    assert len(alert_ids) == len(values["alerts"])
    assert alert_ids <= set(values["processedAlertIds"])
    assert any(alert_id.startswith("interaction:") for alert_id in alert_ids)
    assert any(alert_id.startswith("stock:") for alert_id in alert_ids)


def test_seed_can_skip_medicines(tmp_path):
    db_file = tmp_path / "seed-users.db"

    _run_seed(db_file, seed_medicines="0")

    values = _read_values(db_file)
    assert "medicines" not in values
    assert {user["email"] for user in values["users"]} == EXPECTED_USERS
