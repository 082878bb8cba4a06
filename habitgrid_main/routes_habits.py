# habitgrid_main/routes_habits.py
from __future__ import annotations
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from habitgrid_calendar.events import local_now, resolve_tz
from habitgrid_calendar.models import parse_hhmm
from habitgrid_main.auth import get_current_user, get_store
from habitgrid_main.store import HabitStore

router = APIRouter(prefix="/api/habits", tags=["habits"])


# ---------- Schemas ----------
class HabitPatchBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    progress: Optional[float] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _hhmm(cls, v):
        if v is not None:
            parse_hhmm(v)
        return v

    def to_document(self) -> Dict:
        """camelCase fields that were actually sent, dates as YYYY-MM-DD."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class HabitCreateBody(HabitPatchBody):
    title: str = Field(min_length=1)
    start_date: date


class CompletionBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    on: Optional[date] = Field(default=None, alias="date")
    completed: bool = True


def _habit_or_404(habit: Optional[Dict]) -> Dict:
    if habit is None:
        raise HTTPException(status_code=404, detail="Habit not found")
    return habit


# ---------- Routes ----------
@router.get("")
def list_habits(user: Dict = Depends(get_current_user), store: HabitStore = Depends(get_store)):
    return store.list_habits(user["_id"])


@router.post("", status_code=201)
def create_habit(
    body: HabitCreateBody,
    user: Dict = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    return store.create_habit(user["_id"], body.to_document())


@router.get("/{habit_id}")
def get_habit(habit_id: str, user: Dict = Depends(get_current_user),
              store: HabitStore = Depends(get_store)):
    return _habit_or_404(store.get_habit(user["_id"], habit_id))


@router.put("/{habit_id}")
def update_habit(
    habit_id: str,
    body: HabitPatchBody,
    user: Dict = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    return _habit_or_404(store.update_habit(user["_id"], habit_id, body.to_document()))


@router.delete("/{habit_id}")
def delete_habit(habit_id: str, user: Dict = Depends(get_current_user),
                 store: HabitStore = Depends(get_store)):
    if not store.delete_habit(user["_id"], habit_id):
        raise HTTPException(status_code=404, detail="Habit not found")
    return {"message": "Habit deleted"}


@router.post("/{habit_id}/complete")
def complete_habit(
    habit_id: str,
    body: Optional[CompletionBody] = None,
    user: Dict = Depends(get_current_user),
    store: HabitStore = Depends(get_store),
):
    body = body or CompletionBody()
    day = body.on or local_now(None, resolve_tz()).date()
    return _habit_or_404(store.set_completion(user["_id"], habit_id, day, body.completed))
