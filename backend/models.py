from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic import Field as ModelField
from pydantic.alias_generators import to_camel
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class AlertType(str, Enum):
    EXPIRY = "expiry"
    STOCK = "stock"
    INTERACTION = "interaction"
    REMINDER = "reminder"


class KeyValueEntry(SQLModel, table=True):
    key: str = Field(primary_key=True, max_length=64)
    value: str = ""
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Medicine(CamelModel):
    id: str
    name: str
    dosage: str
    frequency: str
    total_quantity: float
    current_quantity: float
    expiry_date: date
    notes: Optional[str] = None
    created_at: datetime = ModelField(default_factory=datetime.now)
    interactions: Optional[list[str]] = None
    time_to_take: Optional[list[str]] = None

    @model_validator(mode="after")
    def check_quantities(self):
        if not 0 <= self.current_quantity <= self.total_quantity:
            raise ValueError("currentQuantity must be between 0 and totalQuantity")
        return self


class Alert(CamelModel):
    id: str
    type: AlertType
    title: str
    description: str
    medicine_ids: list[str]
    created_at: datetime = ModelField(default_factory=datetime.now)
    read: bool = False


class User(CamelModel):
    id: str
    name: str
    email: str
    avatar: Optional[str] = None
    is_active: bool = False
