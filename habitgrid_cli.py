# HabitGrid CLI: drives the API client + calendar view, and serves the API

import argparse
import getpass
import logging
import sys
from datetime import date
from pathlib import Path

from core.errors import HabitApiError, HttpError, Unauthorized
from core.session import FileSession
from core.shell import AppShell
from habitgrid_calendar.events import derive_events
from habitgrid_calendar.ics import events_to_ics
from habitgrid_calendar.view import GENERIC_ERROR, ViewState
from utils.config import CONFIG
from utils.logger import setup_logger

logger = logging.getLogger(__name__)


def _shell(args) -> AppShell:
    return AppShell(session=FileSession(args.token_file), base_url=args.api_url)


def _fail(err: HabitApiError) -> int:
    msg = err.server_message if isinstance(err, HttpError) and err.server_message else err.message
    print(f"Error: {msg}", file=sys.stderr)
    if isinstance(err, Unauthorized):
        print("Your session has expired. Run `habitgrid login --token ...` again.", file=sys.stderr)
    return 1


def cmd_login(args):
    FileSession(args.token_file).set_token(args.token)
    print(f"Credential stored in {args.token_file}")
    return 0


def cmd_logout(args):
    FileSession(args.token_file).clear()
    print("Logged out.")
    return 0


def cmd_calendar(args):
    shell = _shell(args)
    view = shell.calendar_view().mount()
    print(view.render(args.view, args.date))
    if view.state == ViewState.UNAUTHENTICATED and shell.navigator.current() == CONFIG["routes"]["login"]:
        print("Your session has expired. Run `habitgrid login --token ...` again.")
    view.unmount()
    return 0 if view.state == ViewState.READY else 1


def cmd_habits(args):
    try:
        habits = _shell(args).api.list_habits()
    except HabitApiError as err:
        return _fail(err)
    for h in habits:
        when = h.get("startDate", "?")
        if h.get("startTime"):
            when += f" {h['startTime']}"
        print(f"{when} | {h.get('title')} [{h.get('category') or 'general'}] "
              f"streak={h.get('streak', 0)} id={h.get('_id')}")
    return 0


def cmd_add(args):
    payload = {"title": args.title, "startDate": args.start_date}
    for key, value in (("description", args.description), ("category", args.category),
                       ("endDate", args.end_date), ("startTime", args.start_time),
                       ("endTime", args.end_time)):
        if value:
            payload[key] = value
    try:
        habit = _shell(args).api.create_habit(payload)
    except HabitApiError as err:
        return _fail(err)
    print(f"Added: {habit['title']} from {habit['startDate']} (id={habit['_id']})")
    return 0


def cmd_complete(args):
    try:
        habit = _shell(args).api.complete_habit(args.habit_id, args.date,
                                                completed=not args.undo)
    except HabitApiError as err:
        return _fail(err)
    print(f"{habit['title']}: streak {habit.get('streak', 0)}")
    return 0


def cmd_profile(args):
    try:
        profile = _shell(args).api.get_profile()
    except HabitApiError as err:
        return _fail(err)
    for key in ("name", "email", "createdAt"):
        print(f"{key}: {profile.get(key)}")
    return 0


def cmd_profile_update(args):
    payload = {k: v for k, v in (("name", args.name), ("email", args.email)) if v}
    if not payload:
        print("Nothing to update (use --name and/or --email).")
        return 1
    try:
        profile = _shell(args).api.update_profile(payload)
    except HabitApiError as err:
        return _fail(err)
    print(f"Updated: {profile.get('name')} <{profile.get('email')}>")
    return 0


def cmd_change_password(args):
    current = getpass.getpass("Current password: ")
    new = getpass.getpass("New password: ")
    try:
        resp = _shell(args).api.change_password(current, new)
    except HabitApiError as err:
        return _fail(err)
    print(resp.get("message", "Password updated"))
    return 0


def cmd_export_ics(args):
    try:
        habits = _shell(args).api.list_habits()
    except HabitApiError as err:
        return _fail(err)
    try:
        events = derive_events(habits)
    except ValueError as err:
        logger.error("Could not derive events from habits: %s", err)
        print(f"Error: {GENERIC_ERROR}", file=sys.stderr)
        return 1
    ics = events_to_ics(events)
    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(ics)
    print(f"Wrote {len(habits)} event(s) to {out}")
    return 0


def cmd_serve(args):
    import uvicorn

    uvicorn.run("habitgrid_main.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="habitgrid", description="HabitGrid CLI")
    p.add_argument("--api-url", default=CONFIG["api"]["base_url"], help="API base URL")
    p.add_argument("--token-file", default=CONFIG["session"]["token_path"],
                   help="Where the bearer credential is stored")
    sub = p.add_subparsers(required=True)

    sp = sub.add_parser("login", help="Store a bearer token issued by the login service")
    sp.add_argument("--token", required=True)
    sp.set_defaults(func=cmd_login)

    sp = sub.add_parser("logout", help="Forget the stored token")
    sp.set_defaults(func=cmd_logout)

    sp = sub.add_parser("calendar", help="Show habits as a calendar")
    sp.add_argument("--view", default=CONFIG["calendar"]["default_view"],
                    choices=["month", "week", "day"])
    sp.add_argument("--date", type=date.fromisoformat, help="YYYY-MM-DD to show (defaults to today)")
    sp.set_defaults(func=cmd_calendar)

    sp = sub.add_parser("habits", help="List raw habit records")
    sp.set_defaults(func=cmd_habits)

    sp = sub.add_parser("add", help="Create a habit")
    sp.add_argument("title")
    sp.add_argument("start_date", help="YYYY-MM-DD")
    sp.add_argument("--start-time", help="HH:MM")
    sp.add_argument("--end-time", help="HH:MM")
    sp.add_argument("--end-date", help="YYYY-MM-DD")
    sp.add_argument("--category")
    sp.add_argument("--description")
    sp.set_defaults(func=cmd_add)

    sp = sub.add_parser("complete", help="Mark a habit done for a day")
    sp.add_argument("habit_id")
    sp.add_argument("--date", type=date.fromisoformat,
                    help="YYYY-MM-DD (defaults to today on the server)")
    sp.add_argument("--undo", action="store_true", help="Record the day as not completed")
    sp.set_defaults(func=cmd_complete)

    sp = sub.add_parser("profile", help="Show your profile")
    sp.set_defaults(func=cmd_profile)

    sp = sub.add_parser("profile-update", help="Change name and/or email")
    sp.add_argument("--name")
    sp.add_argument("--email")
    sp.set_defaults(func=cmd_profile_update)

    sp = sub.add_parser("change-password", help="Change your password (prompts)")
    sp.set_defaults(func=cmd_change_password)

    sp = sub.add_parser("export-ics", help="Write derived calendar events to an .ics file")
    sp.add_argument("--out", default="habits.ics")
    sp.set_defaults(func=cmd_export_ics)

    sp = sub.add_parser("serve", help="Run the API server")
    sp.add_argument("--host", default=CONFIG["server"]["host"])
    sp.add_argument("--port", type=int, default=CONFIG["server"]["port"])
    sp.add_argument("--reload", action="store_true")
    sp.set_defaults(func=cmd_serve)
    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logger()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
