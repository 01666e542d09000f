"""Tests for the gc-parse command line."""
from __future__ import annotations

import json

from typer.testing import CliRunner

from gc_parse.cli import app, build_event_row, format_seconds
from gc_parse.parser import parse_line
from gc_parse.scanner import ParsePosition

runner = CliRunner()


def test_parse_renders_tables(gc_log_file, cms_log_lines) -> None:
    path = gc_log_file(cms_log_lines)
    result = runner.invoke(app, ["parse", str(path)])
    assert result.exit_code == 0
    assert "GC Events" in result.output
    assert "Events parsed" in result.output
    assert "sun_x_log_gc" in result.output


def test_parse_json(gc_log_file, parallel_log_lines) -> None:
    path = gc_log_file(parallel_log_lines)
    result = runner.invoke(app, ["parse", str(path), "--json"])
    assert result.exit_code == 0
    events = [json.loads(line) for line in result.stdout.splitlines() if line.strip()]
    assert len(events) == 2
    assert events[0]["kind"] == "collection"
    assert events[1]["gc_type"]["name"] == "Full GC (System)"
    assert [d["gc_type"]["name"] for d in events[1]["details"]] == [
        "PSYoungGen",
        "PSOldGen",
        "PSPermGen",
    ]


def test_unsupported_format_exits_with_error(gc_log_file) -> None:
    path = gc_log_file(["2.345: [GC pause (G1 Evacuation Pause) (young), 0.0123 secs]"])
    result = runner.invoke(app, ["parse", str(path)])
    assert result.exit_code == 1
    assert "ERROR" in result.output


def test_no_events_exits_with_error(gc_log_file) -> None:
    path = gc_log_file(["[GC garbage", "more garbage"])
    result = runner.invoke(app, ["parse", str(path)])
    assert result.exit_code == 1
    assert "No GC events found" in result.output


def test_parse_reports_unparseable_lines(gc_log_file) -> None:
    path = gc_log_file([
        "1.0: [GC 2K->1K(3K), 0.1 secs]",
        "1.5: [Bogus 2K->1K(3K), 0.1 secs]",
    ])
    result = runner.invoke(app, ["parse", str(path)])
    assert result.exit_code == 0
    assert "Unparseable lines" in result.output
    assert "Traceback" not in result.output


def test_missing_file(tmp_path) -> None:
    result = runner.invoke(app, ["parse", str(tmp_path / "missing.log")])
    assert result.exit_code != 0


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "gc-parse 1.0.0" in result.output


# ---------------------------------------------------------------------------
# row formatting
# ---------------------------------------------------------------------------

def test_format_seconds() -> None:
    assert format_seconds(None) == "-"
    assert format_seconds(0.0123456) == "0.0123456s"


def test_build_event_row_for_collection() -> None:
    event = parse_line(
        "0.120: [GC 0.120: [ParNew: 4416K->512K(4928K), 0.0060270 secs] "
        "4416K->1193K(15872K), 0.0061010 secs]",
        ParsePosition(),
    )
    row = build_event_row(1, event)
    assert row["Type"] == "GC"
    assert row["After"] == "1193K"
    assert row["Details"] == "ParNew"
    assert row["Datestamp"] == "-"


def test_build_event_row_for_phase() -> None:
    event = parse_line("0.427: [CMS-concurrent-mark: 0.020/0.066 secs]", ParsePosition())
    row = build_event_row(4, event)
    assert row["Before"] == "-"
    assert row["Pause"] == "0.0200000s / 0.0660000s"
