"""Output formatting for rollbaz."""

from __future__ import annotations

import json
import os
from contextlib import AbstractContextManager, nullcontext
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import click
from rich import box
from rich.console import Console, Group, RenderableType
from rich.table import Table
from rich.text import Text

from rollbaz.models.issue import IssueDetail, IssueSummary, ItemActionResult
from rollbaz.services.issue_filter import MAX_INT64
from rollbaz.services.redact import redact_value

console = Console()
error_console = Console(stderr=True)

FALLBACK_RENDER_WIDTH = 120
MIN_RENDER_WIDTH = 80
MAX_RENDER_WIDTH = 140
MIN_TITLE_WIDTH = 24
LIST_NON_TITLE_WIDTH = 74
MIN_DETAIL_VALUE_WIDTH = 40
MAX_DETAIL_VALUE_WIDTH = 100
DETAIL_NON_VALUE_WIDTH = 20


class OutputFormat(str, Enum):
    HUMAN = "human"
    JSON = "json"


def fallback(value: str | None) -> str:
    trimmed = (value or "").strip()
    return trimmed or "unknown"


def format_timestamp(unix_seconds: int | None) -> str:
    if unix_seconds is None or unix_seconds > MAX_INT64:
        return "unknown"
    try:
        moment = datetime.fromtimestamp(unix_seconds, UTC)
    except (OverflowError, OSError, ValueError):
        return "unknown"
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_occurrences(occurrences: int | None) -> str:
    return "unknown" if occurrences is None else str(occurrences)


def should_include_main_error_line(detail: IssueDetail) -> bool:
    """Skip the heading when it adds nothing over the title."""
    main_error = detail.main_error.strip()
    if not main_error or main_error.lower() == "unknown":
        return False

    title = detail.issue.title.strip()
    if not title:
        return True
    return main_error.lower() not in title.lower()


def terminal_render_width() -> int:
    if not console.is_terminal:
        return FALLBACK_RENDER_WIDTH
    width = console.size.width
    if width < MIN_RENDER_WIDTH:
        return FALLBACK_RENDER_WIDTH
    return min(width - 2, MAX_RENDER_WIDTH)


def issue_list_renderable(issues: list[IssueSummary], width: int) -> RenderableType:
    if not issues:
        return Text("no issues found")

    title_width = max(width - LIST_NON_TITLE_WIDTH, MIN_TITLE_WIDTH)

    table = Table(box=box.SQUARE)
    table.add_column("COUNTER", style="cyan", no_wrap=True)
    table.add_column("STATUS", no_wrap=True)
    table.add_column("ENV", no_wrap=True)
    table.add_column("OCCURRENCES", justify="right", no_wrap=True)
    table.add_column("LAST_SEEN", no_wrap=True)
    table.add_column("TITLE", max_width=title_width, no_wrap=True, overflow="ellipsis")

    for issue in issues:
        status = fallback(issue.status)
        status_color = {
            "active": "red",
            "resolved": "green",
            "muted": "dim",
        }.get(status.lower(), "white")

        table.add_row(
            str(issue.counter),
            Text(status, style=status_color),
            fallback(issue.environment),
            format_occurrences(issue.occurrences),
            format_timestamp(issue.last_occurrence_timestamp),
            fallback(issue.title),
        )

    return table


def issue_table(issue: IssueSummary, width: int) -> Table:
    value_width = min(
        max(width - DETAIL_NON_VALUE_WIDTH, MIN_DETAIL_VALUE_WIDTH),
        MAX_DETAIL_VALUE_WIDTH,
    )

    table = Table(box=box.SQUARE, show_header=False)
    table.add_column("Field", style="bold", no_wrap=True)
    table.add_column("Value", max_width=value_width, no_wrap=True, overflow="ellipsis")
    table.add_row("Title", fallback(issue.title))
    table.add_row("Status", fallback(issue.status))
    table.add_row("Environment", fallback(issue.environment))
    table.add_row("Occurrences", format_occurrences(issue.occurrences))
    table.add_row("Counter", str(issue.counter))
    table.add_row("Item ID", str(issue.item_id))
    return table


def issue_detail_renderable(detail: IssueDetail, width: int) -> RenderableType:
    table = issue_table(detail.issue, width)
    if not should_include_main_error_line(detail):
        return table

    heading = Text(
        f"Main Error: {fallback(detail.main_error)}",
        style="bold red",
        no_wrap=True,
        overflow="ellipsis",
    )
    return Group(heading, Text(""), table)


def action_renderable(result: ItemActionResult, width: int) -> RenderableType:
    heading = Text(f"{result.action} item {result.issue.counter}", style="green")
    return Group(heading, issue_table(result.issue, width))


def render_json(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def output_json(data: Any, token: str = "") -> None:
    """Output data as redacted JSON."""
    click.echo(render_json(redact_value(data, token)))


def output_human(renderable: RenderableType, width: int | None = None) -> None:
    console.print(renderable, width=width or terminal_render_width())


def output_issue_list(
    issues: list[IssueSummary], fmt: OutputFormat = OutputFormat.HUMAN, token: str = ""
) -> None:
    if fmt == OutputFormat.JSON:
        output_json({"issues": [issue.to_dict() for issue in issues]}, token)
    else:
        width = terminal_render_width()
        output_human(issue_list_renderable(issues, width), width)


def output_issue_detail(
    detail: IssueDetail, fmt: OutputFormat = OutputFormat.HUMAN, token: str = ""
) -> None:
    if fmt == OutputFormat.JSON:
        output_json(detail.to_dict(), token)
    else:
        width = terminal_render_width()
        output_human(issue_detail_renderable(detail, width), width)


def output_action(
    result: ItemActionResult, fmt: OutputFormat = OutputFormat.HUMAN, token: str = ""
) -> None:
    if fmt == OutputFormat.JSON:
        output_json(result.to_dict(), token)
    else:
        width = terminal_render_width()
        output_human(action_renderable(result, width), width)


def output_error(message: str) -> None:
    click.echo(message, err=True)


def progress(fmt: OutputFormat, message: str) -> AbstractContextManager[Any]:
    """Transient spinner on stderr for interactive human output."""
    if fmt != OutputFormat.HUMAN or os.getenv("CI") or not console.is_terminal:
        return nullcontext()
    return error_console.status(message)
