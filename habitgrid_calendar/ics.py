from __future__ import annotations
from datetime import datetime
from typing import Iterable, Optional

from icalendar import Calendar, Event, vText

from habitgrid_calendar.events import event_status, local_now, resolve_tz
from habitgrid_calendar.models import CalendarEvent


def events_to_ics(events: Iterable[CalendarEvent],
                  now: Optional[datetime] = None,
                  tz=None) -> bytes:
    """
    Serialize derived events to an iCalendar document.
    Habit metadata rides along as X-HABIT-* properties so other tools can read it back.
    """
    tzinfo = resolve_tz(tz)
    stamp = local_now(now, tzinfo)

    cal = Calendar()
    cal.add("prodid", "-//HabitGrid//Calendar//EN")
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")

    for ev in events:
        props = ev.extended_props
        item = Event()
        item.add("uid", f"{ev.id}@habitgrid")
        item.add("summary", vText(ev.title))
        item.add("dtstart", ev.start.astimezone(tzinfo))
        item.add("dtend", ev.end.astimezone(tzinfo))
        item.add("dtstamp", stamp)
        if props.description:
            item.add("description", vText(props.description))
        if props.category:
            item.add("categories", [props.category])

        item.add("X-HABIT-STATUS", event_status(ev))
        item.add("X-HABIT-COLOR", ev.background_color)
        item.add("X-HABIT-STREAK", str(props.streak or 0))
        item.add("X-HABIT-PROGRESS", str(props.progress or 0))
        cal.add_component(item)

    return cal.to_ical()
