# Habit -> calendar event derivation.
#
# Pure: the only inputs are the habit records, "now" and the time zone.
# Events are rebuilt from scratch on every fetch and never persisted.
#
# Color rules:
#   completed today (any completionHistory entry dated today with completed=true) -> green
#   otherwise start strictly before now                                           -> red
#   otherwise                                                                     -> blue

from __future__ import annotations
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, List, Optional, Union

import pytz
from dateutil.parser import isoparse

from habitgrid_calendar.models import CalendarEvent, EventProps, Habit, parse_hhmm
from utils.config import CONFIG

COLOR_COMPLETED = CONFIG["calendar"]["colors"]["completed"]
COLOR_OVERDUE = CONFIG["calendar"]["colors"]["overdue"]
COLOR_UPCOMING = CONFIG["calendar"]["colors"]["upcoming"]

DEFAULT_DURATION = timedelta(hours=1)

_STATUS_BY_COLOR = {
    COLOR_COMPLETED: "completed",
    COLOR_OVERDUE: "overdue",
    COLOR_UPCOMING: "upcoming",
}


def resolve_tz(tz: Union[str, Any, None] = None):
    if tz is None:
        return pytz.timezone(CONFIG["calendar"]["tz"])
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz


def _localize(naive: datetime, tzinfo) -> datetime:
    # pytz zones need localize(); plain tzinfo objects can be attached directly
    if hasattr(tzinfo, "localize"):
        return tzinfo.localize(naive)
    return naive.replace(tzinfo=tzinfo)


def local_now(now: Optional[datetime], tzinfo) -> datetime:
    """Naive `now` is read as wall-clock time in `tzinfo`; aware `now` is converted."""
    if now is None:
        return datetime.now(tzinfo)
    if now.tzinfo is None:
        return _localize(now, tzinfo)
    return now.astimezone(tzinfo)


def calendar_day(value: str, tzinfo) -> date:
    parsed = isoparse(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tzinfo)
    return parsed.date()


def is_completed_on(habit: Habit, day: date, tzinfo) -> bool:
    return any(
        entry.completed and calendar_day(entry.date, tzinfo) == day
        for entry in habit.completion_history
    )


def habit_to_event(habit: Union[Habit, dict],
                   now: Optional[datetime] = None,
                   tz=None) -> CalendarEvent:
    tzinfo = resolve_tz(tz)
    if not isinstance(habit, Habit):
        habit = Habit.model_validate(habit)
    now_local = local_now(now, tzinfo)

    start_day = calendar_day(habit.start_date, tzinfo)
    hours, minutes = parse_hhmm(habit.start_time) if habit.start_time else (0, 0)
    start_naive = datetime.combine(start_day, time(hours, minutes))

    end_day = calendar_day(habit.end_date, tzinfo) if habit.end_date else start_day
    if habit.end_time:
        end_hours, end_minutes = parse_hhmm(habit.end_time)
        end_naive = datetime.combine(end_day, time(end_hours, end_minutes))
    else:
        # a start in the last hour of the day rolls the end into the next day
        end_naive = datetime.combine(end_day, time(hours, minutes)) + DEFAULT_DURATION

    start = _localize(start_naive, tzinfo)
    end = _localize(end_naive, tzinfo)

    completed = is_completed_on(habit, now_local.date(), tzinfo)
    if completed:
        color = COLOR_COMPLETED
    elif start < now_local:
        color = COLOR_OVERDUE
    else:
        color = COLOR_UPCOMING

    return CalendarEvent(
        id=habit.id,
        title=habit.title,
        start=start,
        end=end,
        all_day=False,
        background_color=color,
        border_color=CONFIG["calendar"]["border_color"],
        text_color=CONFIG["calendar"]["text_color"],
        extended_props=EventProps(
            description=habit.description,
            category=habit.category,
            streak=habit.streak,
            progress=habit.progress,
            is_completed=completed,
        ),
    )


def derive_events(habits: Optional[Iterable[Union[Habit, dict]]],
                  now: Optional[datetime] = None,
                  tz=None) -> List[CalendarEvent]:
    """Map every habit to one event; the whole batch shares a single `now`."""
    tzinfo = resolve_tz(tz)
    now_local = local_now(now, tzinfo)
    return [habit_to_event(h, now_local, tzinfo) for h in habits or []]


def event_status(event: CalendarEvent) -> str:
    if event.extended_props.is_completed:
        return "completed"
    return _STATUS_BY_COLOR.get(event.background_color, "upcoming")
