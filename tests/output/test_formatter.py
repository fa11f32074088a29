from __future__ import annotations

import json
from io import StringIO

import pytest
from rich.console import Console

from btmon.api.errors import ProtocolError
from btmon.output.formatter import OutputFormatter
from btmon.telemetry.poller import MeasurementRecord

RECORD = MeasurementRecord(fields={"temp_1": 68}, tags={"server": "http://bt1.local/"})
ERRORS = [("http://bt2.local/", ProtocolError("expected status 200; got 500"))]


def _formatter(fmt: str) -> tuple[OutputFormatter, StringIO]:
    buf = StringIO()
    console = Console(file=buf, width=120, force_terminal=False, color_system=None)
    return OutputFormatter(force_format=fmt, console=console), buf


class TestCycle:
    def test_json_is_one_envelope(self, capsys: pytest.CaptureFixture[str]) -> None:
        formatter, buf = _formatter("json")
        formatter.cycle([RECORD], ERRORS, command="gather")

        parsed = json.loads(capsys.readouterr().out)
        assert parsed["command"] == "gather"
        assert parsed["data"]["records"][0]["fields"] == {"temp_1": 68}
        assert parsed["data"]["errors"] == [
            {
                "server": "http://bt2.local/",
                "error": {"type": "ProtocolError", "message": "expected status 200; got 500"},
            }
        ]
        assert buf.getvalue() == ""

    def test_rich_prints_records_and_failures(self, capsys: pytest.CaptureFixture[str]) -> None:
        formatter, buf = _formatter("rich")
        formatter.cycle([RECORD], ERRORS, command="gather")

        text = buf.getvalue()
        assert "temp_1" in text
        assert "FAILED" in text
        assert "http://bt2.local/" in text
        assert capsys.readouterr().out == ""

    def test_quiet_prints_only_failures(self) -> None:
        formatter, buf = _formatter("quiet")
        formatter.cycle([RECORD], ERRORS, command="gather")

        text = buf.getvalue()
        assert "temp_1" not in text
        assert "FAILED" in text


class TestError:
    def test_json_appends_hint(self, capsys: pytest.CaptureFixture[str]) -> None:
        formatter, _ = _formatter("json")
        formatter.error(code="config_error", message="No servers.", command="gather", hint="Set X.")

        parsed = json.loads(capsys.readouterr().out)
        assert parsed["ok"] is False
        assert parsed["command"] == "gather"
        assert parsed["error"] == {"code": "config_error", "message": "No servers. Set X."}

    def test_rich_prints_message_and_hint(self) -> None:
        formatter, buf = _formatter("rich")
        formatter.error(code="auth_failed", message="Denied", command="gather", hint="Try [again]")

        text = buf.getvalue()
        assert "Error: Denied" in text
        assert "Try [again]" in text


class TestAutoDetect:
    def test_non_tty_defaults_to_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdout", StringIO())
        assert OutputFormatter().format == "json"

    def test_forced_format_wins(self) -> None:
        assert OutputFormatter(force_format="rich").format == "rich"
