# Habit records (as served by the API) and the calendar events derived from them.
from __future__ import annotations
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from dateutil.parser import isoparse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_hhmm(value: str) -> Tuple[int, int]:
    """'09:30' -> (9, 30). Raises ValueError on anything else."""
    m = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if not m:
        raise ValueError(f"expected HH:MM, got {value!r}")
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"time out of range: {value!r}")
    return hours, minutes


def _iso_text(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def _check_iso(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    isoparse(value)  # ValueError bubbles up as a validation error
    return value


_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CompletionEntry(BaseModel):
    model_config = _WIRE

    date: str
    completed: bool = False

    @field_validator("date", mode="before")
    @classmethod
    def _date_text(cls, v):
        return _iso_text(v)

    @field_validator("date")
    @classmethod
    def _date_iso(cls, v):
        return _check_iso(v)


class Habit(BaseModel):
    model_config = _WIRE

    id: str = Field(validation_alias=AliasChoices("_id", "id"), serialization_alias="_id")
    title: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    start_date: str
    end_date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    completion_history: List[CompletionEntry] = Field(default_factory=list)
    streak: Optional[int] = 0
    progress: Optional[float] = 0

    @field_validator("id", mode="before")
    @classmethod
    def _id_text(cls, v):
        return str(v) if v is not None else v

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _dates_text(cls, v):
        return _iso_text(v) or None

    @field_validator("start_date", "end_date")
    @classmethod
    def _dates_iso(cls, v):
        return _check_iso(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _times(cls, v):
        if v in (None, ""):
            return None
        parse_hhmm(v)
        return v

    @field_validator("completion_history", mode="before")
    @classmethod
    def _history(cls, v):
        return v or []


class EventProps(BaseModel):
    """Display-only metadata carried by an event; read-only."""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    description: Optional[str] = None
    category: Optional[str] = None
    streak: Optional[int] = 0
    progress: Optional[float] = 0
    is_completed: bool = False


class CalendarEvent(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    start: datetime
    end: datetime
    all_day: bool = False
    background_color: str
    border_color: str = "transparent"
    text_color: str = "#ffffff"
    extended_props: EventProps = Field(default_factory=EventProps)

    def to_fullcalendar(self) -> Dict[str, Any]:
        """camelCase dict in the shape FullCalendar-style grids expect."""
        return self.model_dump(by_alias=True, mode="json")
