from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field

from models import CamelModel
from services.tracker import MedicineTracker, get_tracker

router = APIRouter(prefix="/users", tags=["users"])


class UserBody(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    avatar: Optional[str] = Field(default=None, max_length=2000)


@router.get("")
def list_users(tracker: MedicineTracker = Depends(get_tracker)):
    return [user.to_json() for user in tracker.users]


@router.get("/active")
def active_user(tracker: MedicineTracker = Depends(get_tracker)):
    user = tracker.active_user
    if not user:
        raise HTTPException(404, "No active user")
    return user.to_json()


@router.post("", status_code=201)
async def create_user(body: UserBody, tracker: MedicineTracker = Depends(get_tracker)):
    user = await tracker.add_user(body.model_dump())
    return user.to_json()


@router.put("/{user_id}")
async def update_user(user_id: str, body: UserBody, tracker: MedicineTracker = Depends(get_tracker)):
    user = await tracker.update_user(user_id, body.model_dump())
    if not user:
        raise HTTPException(404, "User not found")
    return user.to_json()


@router.delete("/{user_id}")
async def delete_user(user_id: str, tracker: MedicineTracker = Depends(get_tracker)):
    if tracker.get_user(user_id) is None:
        raise HTTPException(404, "User not found")
    deleted = await tracker.delete_user(user_id)
    return {"deleted": deleted, "activeUserId": tracker.state.active_user_id}


@router.post("/{user_id}/activate")
async def activate_user(user_id: str, tracker: MedicineTracker = Depends(get_tracker)):
    user = await tracker.set_active_user(user_id)
    if not user:
        raise HTTPException(404, "User not found")
    return user.to_json()
