from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field, StringConstraints, model_validator

from models import CamelModel
from services.schedule import build_daily_schedule
from services.tracker import MedicineTracker, get_tracker

router = APIRouter(tags=["medicines"])

TimeOfDay = Annotated[str, StringConstraints(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")]

class MedicineBody(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    dosage: str = Field(min_length=1, max_length=120)
    frequency: str = Field(min_length=1, max_length=120)
    total_quantity: float = Field(gt=0)
    current_quantity: float = Field(ge=0)
    expiry_date: date
    notes: Optional[str] = Field(default=None, max_length=2000)
    time_to_take: Optional[list[TimeOfDay]] = None

    @model_validator(mode="after")
    def _check_fields(self):
        for name in ("name", "dosage", "frequency"):
            value = getattr(self, name).strip()
            if not value:
                raise ValueError(f"{name} cannot be blank")
            setattr(self, name, value)
        if self.current_quantity > self.total_quantity:
            raise ValueError("currentQuantity cannot exceed totalQuantity")
        return self


@router.get("/medicines")
def list_medicines(
    q: Optional[str] = Query(default=None, max_length=120),
    tracker: MedicineTracker = Depends(get_tracker),
):
    return [medicine.to_json() for medicine in tracker.search_medicines(q)]

@router.post("/medicines", status_code=201)
async def create_medicine(body: MedicineBody, tracker: MedicineTracker = Depends(get_tracker)):
    medicine = await tracker.add_medicine(body.model_dump())
    new_alerts = await tracker.on_medicines_changed()
    result = medicine.to_json()
    result["newAlerts"] = [alert.to_json() for alert in new_alerts]
    return result

@router.get("/medicines/{medicine_id}")
def get_medicine(medicine_id: str, tracker: MedicineTracker = Depends(get_tracker)):
    medicine = tracker.get_medicine(medicine_id)
    if not medicine:
        raise HTTPException(404, "Medicine not found")
    return medicine.to_json()

@router.put("/medicines/{medicine_id}")
async def update_medicine(
    medicine_id: str,
    body: MedicineBody,
    tracker: MedicineTracker = Depends(get_tracker),
):
    medicine = await tracker.update_medicine(medicine_id, body.model_dump())
    if not medicine:
        raise HTTPException(404, "Medicine not found")
    new_alerts = await tracker.on_medicines_changed()
    result = medicine.to_json()
    result["newAlerts"] = [alert.to_json() for alert in new_alerts]
    return result

@router.delete("/medicines/{medicine_id}", status_code=204)
async def delete_medicine(medicine_id: str, tracker: MedicineTracker = Depends(get_tracker)):
    if not await tracker.delete_medicine(medicine_id):
        raise HTTPException(404, "Medicine not found")
    await tracker.on_medicines_changed()

@router.get("/interactions")
def preview_interactions(
    name: str = Query(min_length=1, max_length=120),
    tracker: MedicineTracker = Depends(get_tracker),
):
    return {"name": name, "interactions": tracker.preview_interactions(name)}

@router.get("/schedule")
def daily_schedule(tracker: MedicineTracker = Depends(get_tracker)):
    return build_daily_schedule(tracker.medicines)
