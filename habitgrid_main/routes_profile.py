# habitgrid_main/routes_profile.py
from __future__ import annotations
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from habitgrid_main.auth import get_current_user, get_store, hash_password, verify_password
from habitgrid_main.store import HabitStore
from utils.config import CONFIG

logger = logging.getLogger(__name__)

router = APIRouter(tags=["profile"])


# ---------- Schemas ----------
class ProfileUpdateBody(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ChangePasswordBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    current_password: str
    new_password: str = Field(min_length=CONFIG["server"]["min_password_length"])


def public_user(user: Dict) -> Dict:
    return {k: v for k, v in user.items() if k != "password"}


# ---------- Routes ----------
@router.get("/profile")
def get_profile(user: Dict = Depends(get_current_user)):
    return public_user(user)


@router.put("/profile")
def update_profile(
    body: ProfileUpdateBody,
    user: Dict = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    if body.email:
        other = store.find_user_by_email(body.email)
        if other and other["_id"] != user["_id"]:
            raise HTTPException(status_code=400, detail="Email is already in use")
    updated = store.update_user(user["_id"], name=body.name, email=body.email)
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("Profile updated for user %s", user["_id"])
    return public_user(updated)


@router.post("/change-password")
def change_password(
    body: ChangePasswordBody,
    user: Dict = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    if not verify_password(body.current_password, user.get("password", "")):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    store.update_user(user["_id"], password=hash_password(body.new_password))
    logger.info("Password changed for user %s", user["_id"])
    return {"message": "Password updated successfully"}
