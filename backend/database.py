import logging
import os
from pathlib import Path

from sqlalchemy import inspect
from sqlmodel import SQLModel, create_engine

logger = logging.getLogger("medtrack.database")

DB_FILE = Path(os.getenv("MEDTRACK_DB_FILE", str(Path(__file__).resolve().parent / "medtrack.db")))
DATABASE_URL = f"sqlite:///{DB_FILE}"

engine = create_engine(DATABASE_URL, echo=False, connect_args={"check_same_thread": False})


REQUIRED_COLUMNS = {
    "keyvalueentry": {"key", "value", "updated_at"},
}


def _schema_needs_rebuild() -> bool:
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())

    for table_name, required_cols in REQUIRED_COLUMNS.items():
        if table_name not in existing_tables:
            continue
        existing_cols = {col["name"] for col in inspector.get_columns(table_name)}
        if not required_cols.issubset(existing_cols):
            return True

    return False


def create_db():
    if _schema_needs_rebuild():
        logger.warning("Schema mismatch detected. Rebuilding local SQLite schema.")
        SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
