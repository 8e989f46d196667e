"""
Tests for terminal and JSON output
"""

import io
import json
from unittest.mock import patch

import pytest
from rich.console import Console

from rollbaz import output
from rollbaz.models.issue import IssueDetail, IssueSummary, ItemActionResult
from rollbaz.output import (
    OutputFormat,
    format_timestamp,
    issue_detail_renderable,
    issue_list_renderable,
    should_include_main_error_line,
)


def _render(renderable, width=120):
    buffer = io.StringIO()
    Console(file=buffer, width=width, color_system=None).print(renderable)
    return buffer.getvalue()


@pytest.fixture
def summary():
    return IssueSummary(
        item_id=1755568172,
        counter=269,
        title="RST_STREAM",
        status="active",
        environment="production",
        last_occurrence_timestamp=1700000000,
        occurrences=7,
        raw={"access_token": "abc", "title": "RST_STREAM"},
    )


@pytest.fixture
def capture_console():
    buffer = io.StringIO()
    with patch.object(output, "console", Console(file=buffer, width=120, color_system=None)):
        yield buffer


class TestFormatting:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (1700000000, "2023-11-14T22:13:20Z"),
            (0, "1970-01-01T00:00:00Z"),
            (None, "unknown"),
            (2**63, "unknown"),
            (2**63 - 1, "unknown"),
        ],
    )
    def test_format_timestamp(self, value, expected):
        assert format_timestamp(value) == expected

    @pytest.mark.parametrize(
        "main_error, title, expected",
        [
            ("stream reset by peer", "RST_STREAM", True),
            ("RST_STREAM", "rst_stream: upstream failed", False),
            ("unknown", "anything", False),
            ("  ", "anything", False),
            ("something broke", "", True),
        ],
    )
    def test_should_include_main_error_line(self, summary, main_error, title, expected):
        """Test the heading is skipped when the title already says it"""
        detail = IssueDetail(
            issue=summary.model_copy(update={"title": title}), main_error=main_error
        )

        assert should_include_main_error_line(detail) is expected


class TestHumanOutput:
    def test_empty_list(self):
        assert _render(issue_list_renderable([], 120)).strip() == "no issues found"

    def test_list_columns(self, summary):
        """Test the list table shows every column"""
        rendered = _render(issue_list_renderable([summary], 120))

        for header in ("COUNTER", "STATUS", "ENV", "OCCURRENCES", "LAST_SEEN", "TITLE"):
            assert header in rendered
        assert "269" in rendered
        assert "2023-11-14T22:13:20Z" in rendered
        assert "RST_STREAM" in rendered

    def test_list_fallbacks(self):
        """Test blank fields print as unknown"""
        issue = IssueSummary(item_id=1, counter=2)

        rendered = _render(issue_list_renderable([issue], 120))

        assert rendered.count("unknown") == 5

    def test_long_title_is_truncated(self, summary):
        issue = summary.model_copy(update={"title": "x" * 300})

        rendered = _render(issue_list_renderable([issue], 120))

        assert "x" * 300 not in rendered
        assert "…" in rendered

    def test_detail_with_main_error(self, summary):
        detail = IssueDetail(issue=summary, main_error="stream reset by peer")

        rendered = _render(issue_detail_renderable(detail, 120))

        assert rendered.startswith("Main Error: stream reset by peer")
        assert "Item ID" in rendered
        assert "1755568172" in rendered

    def test_detail_without_main_error(self, summary):
        detail = IssueDetail(issue=summary, main_error="RST_STREAM")

        rendered = _render(issue_detail_renderable(detail, 120))

        assert "Main Error" not in rendered

    def test_output_action(self, summary, capture_console):
        output.output_action(ItemActionResult(action="resolved", issue=summary))

        assert capture_console.getvalue().startswith("resolved item 269")


class TestJsonOutput:
    def test_issue_list(self, summary, capsys):
        """Test JSON lists are wrapped and redacted"""
        output.output_issue_list([summary], OutputFormat.JSON, token="RST")

        data = json.loads(capsys.readouterr().out)
        issue = data["issues"][0]
        assert issue["counter"] == 269
        assert issue["title"] == "[REDACTED]_STREAM"
        assert issue["raw"]["access_token"] == "[REDACTED]"

    def test_issue_detail(self, summary, capsys):
        detail = IssueDetail(
            issue=summary, main_error="boom", item_raw={"id": 1}, instance_raw=None
        )

        output.output_issue_detail(detail, OutputFormat.JSON)

        data = json.loads(capsys.readouterr().out)
        assert data["main_error"] == "boom"
        assert data["item_raw"] == {"id": 1}
        assert data["instance"] is None

    def test_action(self, summary, capsys):
        output.output_action(ItemActionResult(action="muted", issue=summary), OutputFormat.JSON)

        data = json.loads(capsys.readouterr().out)
        assert data["action"] == "muted"
        assert data["issue"]["item_id"] == 1755568172

    def test_indented(self, capsys):
        output.output_json({"a": 1})

        assert capsys.readouterr().out == '{\n  "a": 1\n}\n'
