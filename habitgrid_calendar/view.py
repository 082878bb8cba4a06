# Calendar view: fetch habits, derive events, render month/week/day text grids.
#
# States
#   AUTH_LOADING     auth collaborator not ready; nothing fetched
#   UNAUTHENTICATED  login prompt; nothing fetched
#   LOADING          fetch in flight
#   ERROR            fetch failed; message from server body or generic text
#   READY            events available
#
# Becoming authenticated triggers a fetch. There is no polling; refresh()
# is the explicit re-trigger. Each fetch carries a generation number and its
# outcome is dropped if the view was unmounted or refreshed meanwhile.

from __future__ import annotations
import calendar as pycal
import logging
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Callable, Dict, List, Optional

from core.errors import HabitApiError, HttpError
from habitgrid_calendar.events import derive_events, event_status, local_now, resolve_tz
from habitgrid_calendar.models import CalendarEvent
from utils.config import CONFIG

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Failed to fetch habits"
LOGIN_PROMPT = "Please login to view your calendar"
SPINNER = "Loading..."

_GLYPHS = {"overdue": "!", "upcoming": "*", "completed": "+"}
_GLYPH_ORDER = ("overdue", "upcoming", "completed")


class ViewState(str, Enum):
    AUTH_LOADING = "auth_loading"
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    ERROR = "error"
    READY = "ready"


def error_message(err: Exception) -> str:
    if isinstance(err, HttpError) and err.server_message:
        return err.server_message
    return GENERIC_ERROR


class CalendarView:
    def __init__(self, api, auth,
                 now_fn: Optional[Callable[[], datetime]] = None,
                 tz=None):
        self.api = api
        self.auth = auth
        self.tz = resolve_tz(tz)
        self.now_fn = now_fn or (lambda: datetime.now(self.tz))
        self.events: List[CalendarEvent] = []
        self.error: Optional[str] = None
        self._fetch_state = ViewState.LOADING
        self._mounted = False
        self._was_authenticated = False
        self._generation = 0

    # -------------------------
    # Lifecycle
    # -------------------------
    @property
    def state(self) -> ViewState:
        if self.auth.loading:
            return ViewState.AUTH_LOADING
        if not self.auth.is_authenticated:
            return ViewState.UNAUTHENTICATED
        return self._fetch_state

    @property
    def mounted(self) -> bool:
        return self._mounted

    def mount(self) -> "CalendarView":
        self._mounted = True
        self._was_authenticated = False
        self.on_auth_changed()
        return self

    def unmount(self) -> None:
        self._mounted = False
        self._generation += 1

    def on_auth_changed(self) -> None:
        """Call whenever the auth collaborator changes; fetches on the transition to authenticated."""
        if not self._mounted:
            return
        ready = bool(self.auth.is_authenticated) and not self.auth.loading
        became_authenticated = ready and not self._was_authenticated
        if not self.auth.loading:
            self._was_authenticated = ready
        if became_authenticated:
            self.refresh()

    def _is_stale(self, generation: int) -> bool:
        return not self._mounted or generation != self._generation

    def refresh(self) -> ViewState:
        self._generation += 1
        generation = self._generation
        self._fetch_state = ViewState.LOADING
        self.error = None

        try:
            habits = self.api.list_habits()
            events = derive_events(habits, now=self.now_fn(), tz=self.tz)
        except (HabitApiError, ValueError) as err:
            if self._is_stale(generation):
                logger.debug("Dropping failure of superseded fetch #%s: %s", generation, err)
                return self.state
            logger.error("Error fetching habits: %s", err)
            self.error = error_message(err)
            self._fetch_state = ViewState.ERROR
            return self.state

        if self._is_stale(generation):
            logger.debug("Dropping result of superseded fetch #%s", generation)
            return self.state
        self.events = events
        self._fetch_state = ViewState.READY
        return self.state

    # -------------------------
    # Rendering
    # -------------------------
    def render(self, view: Optional[str] = None, anchor: Optional[date] = None) -> str:
        state = self.state
        if state in (ViewState.AUTH_LOADING, ViewState.LOADING):
            return SPINNER
        if state == ViewState.UNAUTHENTICATED:
            return LOGIN_PROMPT
        if state == ViewState.ERROR:
            return self.error or GENERIC_ERROR

        view = view or CONFIG["calendar"]["default_view"]
        today = local_now(self.now_fn(), self.tz).date()
        # nothing before today is navigable
        anchor = max(anchor or today, today)

        if view == "month":
            return self._render_month(anchor)
        if view == "week":
            monday = anchor - timedelta(days=anchor.weekday())
            return self._render_days("Week of " + monday.isoformat(),
                                     [monday + timedelta(days=i) for i in range(7)])
        if view == "day":
            return self._render_days(anchor.strftime("%A %Y-%m-%d"), [anchor])
        raise ValueError(f"unknown calendar view {view!r} (month|week|day)")

    def events_by_day(self) -> Dict[date, List[CalendarEvent]]:
        out: Dict[date, List[CalendarEvent]] = {}
        for ev in sorted(self.events, key=lambda e: e.start):
            for d in self._days_covered(ev):
                out.setdefault(d, []).append(ev)
        return out

    def _days_covered(self, ev: CalendarEvent) -> List[date]:
        start = ev.start.astimezone(self.tz)
        end = ev.end.astimezone(self.tz)
        last = end.date()
        # an end at exactly midnight does not occupy that day
        if end.time() == time(0, 0) and last > start.date():
            last -= timedelta(days=1)
        if last < start.date():
            return [start.date()]
        return [start.date() + timedelta(days=i) for i in range((last - start.date()).days + 1)]

    def _line(self, ev: CalendarEvent) -> str:
        start = ev.start.astimezone(self.tz)
        end = ev.end.astimezone(self.tz)
        return f"{start:%H:%M}–{end:%H:%M}  {ev.title} [{event_status(ev)}]"

    def _render_days(self, header: str, days: List[date]) -> str:
        by_day = self.events_by_day()
        lines = [header]
        for d in days:
            lines.append(d.strftime("%a %Y-%m-%d"))
            evs = by_day.get(d, [])
            if not evs:
                lines.append("  (no habits)")
            for ev in evs:
                lines.append("  " + self._line(ev))
        return "\n".join(lines)

    def _render_month(self, anchor: date) -> str:
        by_day = self.events_by_day()
        lines = [anchor.strftime("%B %Y"), "Mo  Tu  We  Th  Fr  Sa  Su"]
        for week in pycal.Calendar(firstweekday=0).monthdayscalendar(anchor.year, anchor.month):
            cells = []
            for day_num in week:
                if day_num == 0:
                    cells.append("   ")
                    continue
                statuses = {event_status(ev) for ev in by_day.get(date(anchor.year, anchor.month, day_num), [])}
                glyph = next((_GLYPHS[s] for s in _GLYPH_ORDER if s in statuses), " ")
                cells.append(f"{day_num:>2}{glyph}")
            lines.append(" ".join(cells).rstrip())
        lines.append("! overdue  * upcoming  + completed today")

        agenda = [(d, evs) for d, evs in sorted(by_day.items())
                  if d.year == anchor.year and d.month == anchor.month]
        if agenda:
            lines.append("")
        for d, evs in agenda:
            for ev in evs:
                lines.append(f"{d:%a %d}  " + self._line(ev))
        return "\n".join(lines)
