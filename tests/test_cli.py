import contextlib
import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import requests

import habitgrid_cli
from utils.persistance import load_json


def _response(status, body):
    resp = requests.Response()
    resp.status_code = status
    resp.url = "http://api.test/api/habits"
    resp.headers["Content-Type"] = "application/json"
    resp._content = json.dumps(body).encode()
    return resp


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.token_file = str(Path(self._tmp.name) / "session.json")
        patcher = mock.patch.object(habitgrid_cli, "setup_logger")
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._tmp.cleanup)

    def run_cli(self, *argv):
        out = io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(out):
            code = habitgrid_cli.main(["--api-url", "http://api.test",
                                       "--token-file", self.token_file, *argv])
        return code, out.getvalue()

    def test_login_and_logout(self) -> None:
        code, _ = self.run_cli("login", "--token", "abc")
        self.assertEqual(code, 0)
        self.assertEqual(load_json(self.token_file, {}), {"token": "abc"})

        code, out = self.run_cli("logout")
        self.assertEqual(code, 0)
        self.assertIn("Logged out", out)
        self.assertEqual(load_json(self.token_file, {}), {})

    def test_calendar_without_login_prompts(self) -> None:
        with mock.patch.object(requests.Session, "request") as req:
            code, out = self.run_cli("calendar")
        self.assertEqual(code, 1)
        self.assertIn("Please login to view your calendar", out)
        req.assert_not_called()

    def test_calendar_day_view(self) -> None:
        self.run_cli("login", "--token", "abc")
        habits = [{"_id": "1", "title": "Run", "startDate": "2099-01-01",
                   "startTime": "06:00", "completionHistory": []}]
        with mock.patch.object(requests.Session, "request", return_value=_response(200, habits)) as req:
            code, out = self.run_cli("calendar", "--view", "day", "--date", "2099-01-01")
        self.assertEqual(code, 0, out)
        self.assertIn("06:00–07:00  Run [upcoming]", out)
        self.assertEqual(req.call_args.kwargs["headers"]["Authorization"], "Bearer abc")

    def test_expired_token_is_forgotten(self) -> None:
        self.run_cli("login", "--token", "old")
        with mock.patch.object(requests.Session, "request",
                               return_value=_response(401, {"message": "Token is not valid"})):
            with self.assertLogs("core.api_client", level="ERROR"):
                code, out = self.run_cli("calendar")
        self.assertEqual(code, 1)
        self.assertIn("Please login to view your calendar", out)
        self.assertIn("session has expired", out)
        self.assertEqual(load_json(self.token_file, {}), {})

    def test_bad_date_is_a_usage_error(self) -> None:
        self.run_cli("login", "--token", "abc")
        for argv in (("calendar", "--view", "day", "--date", "2024-13-01"),
                     ("complete", "h1", "--date", "yesterday")):
            with mock.patch.object(requests.Session, "request") as req:
                with self.assertRaises(SystemExit) as ctx:
                    self.run_cli(*argv)
            self.assertEqual(ctx.exception.code, 2)
            req.assert_not_called()

    def test_complete_sends_parsed_date(self) -> None:
        self.run_cli("login", "--token", "abc")
        done = {"_id": "h1", "title": "Run", "streak": 1}
        with mock.patch.object(requests.Session, "request", return_value=_response(200, done)) as req:
            code, out = self.run_cli("complete", "h1", "--date", "2024-01-11")
        self.assertEqual(code, 0, out)
        self.assertEqual(req.call_args.kwargs["json"], {"completed": True, "date": "2024-01-11"})

    def test_export_ics_with_malformed_habit(self) -> None:
        self.run_cli("login", "--token", "abc")
        out_file = Path(self._tmp.name) / "habits.ics"
        habits = [{"_id": "1", "title": "Run", "startDate": "2099-01-01", "startTime": "nine"}]
        with mock.patch.object(requests.Session, "request", return_value=_response(200, habits)):
            with self.assertLogs("habitgrid_cli", level="ERROR"):
                code, out = self.run_cli("export-ics", "--out", str(out_file))
        self.assertEqual(code, 1)
        self.assertIn("Failed to fetch habits", out)
        self.assertFalse(out_file.exists())

    def test_export_ics_writes_file(self) -> None:
        self.run_cli("login", "--token", "abc")
        out_file = Path(self._tmp.name) / "habits.ics"
        habits = [{"_id": "1", "title": "Run", "startDate": "2099-01-01", "startTime": "06:00"}]
        with mock.patch.object(requests.Session, "request", return_value=_response(200, habits)):
            code, out = self.run_cli("export-ics", "--out", str(out_file))
        self.assertEqual(code, 0, out)
        self.assertIn(b"SUMMARY:Run", out_file.read_bytes())

    def test_server_down_reports_message(self) -> None:
        self.run_cli("login", "--token", "abc")
        with mock.patch.object(requests.Session, "request",
                               side_effect=requests.exceptions.ConnectionError("refused")):
            with self.assertLogs("core.api_client", level="ERROR"):
                code, out = self.run_cli("habits")
        self.assertEqual(code, 1)
        self.assertIn("Server is not running", out)


if __name__ == "__main__":
    unittest.main(verbosity=2)
