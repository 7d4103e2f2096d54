from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from models import AlertType
from services.tracker import MedicineTracker, get_tracker

router = APIRouter(prefix="/alerts", tags=["alerts"])


def _payload(alerts) -> list[dict]:
    return [alert.to_json() for alert in alerts]


@router.get("")
def list_alerts(
    kind: Optional[AlertType] = Query(default=None, alias="type"),
    unread: bool = False,
    tracker: MedicineTracker = Depends(get_tracker),
):
    return _payload(tracker.get_alerts(kind, unread_only=unread))


@router.get("/expiry")
def expiry_alerts(tracker: MedicineTracker = Depends(get_tracker)):
    return _payload(tracker.get_expiry_alerts())


@router.get("/stock")
def stock_alerts(tracker: MedicineTracker = Depends(get_tracker)):
    return _payload(tracker.get_stock_alerts())


@router.get("/interaction")
def interaction_alerts(tracker: MedicineTracker = Depends(get_tracker)):
    return _payload(tracker.get_interaction_alerts())


@router.get("/reminder")
def reminder_alerts(tracker: MedicineTracker = Depends(get_tracker)):
    return _payload(tracker.get_reminder_alerts())


@router.post("/refresh")
async def refresh_alerts(tracker: MedicineTracker = Depends(get_tracker)):
    """Re-run evaluation without a mutation, e.g. when the app is opened."""
    new_alerts = await tracker.on_medicines_changed()
    return {"generated": len(new_alerts), "alerts": _payload(new_alerts)}


@router.patch("/{alert_id}/read")
async def mark_alert_read(alert_id: str, tracker: MedicineTracker = Depends(get_tracker)):
    if not await tracker.mark_alert_as_read(alert_id):
        raise HTTPException(404, "Alert not found")
    return {"id": alert_id, "read": True}
