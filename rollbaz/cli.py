"""rollbaz CLI - fast Rollbar triage from your terminal."""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any, TypeVar

import click
from dotenv import load_dotenv
from pydantic import BaseModel

from rollbaz.errors import ConfigError, RollbazError, TransportError, ValidationError
from rollbaz.models.config import AppConfig
from rollbaz.models.domain import parse_item_counter, parse_uint64
from rollbaz.models.issue import IssueFilters
from rollbaz.output import (
    OutputFormat,
    output_action,
    output_error,
    output_issue_detail,
    output_issue_list,
    output_json,
    progress,
)
from rollbaz.services.config_store import ConfigStore
from rollbaz.services.issue_service import IssueService
from rollbaz.services.redact import redact_string
from rollbaz.services.rollbar_client import RollbarClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

DURATION_PATTERN = re.compile(
    r"^(?:(?P<days>\d+)d)?(?:(?P<hours>\d+)h)?(?:(?P<minutes>\d+)m)?(?:(?P<seconds>\d+)s)?$"
)
UNIX_SECONDS_PATTERN = re.compile(r"^[+-]?\d+$")


class RootFlags(BaseModel):
    output_format: OutputFormat = OutputFormat.HUMAN
    project: str = ""
    token: str = ""
    limit: int = 10
    environment: str = ""
    status: str = ""
    since: str = ""
    until: str = ""
    min_occurrences: str = ""
    max_occurrences: str = ""

    def merged(self, overrides: dict[str, Any]) -> "RootFlags":
        """Flags given after the subcommand win over those given before it."""
        given = {key: value for key, value in overrides.items() if value is not None}
        return RootFlags.model_validate({**self.model_dump(), **given})


_ISSUE_OPTIONS = [
    click.option(
        "--format",
        "output_format",
        type=click.Choice([f.value for f in OutputFormat]),
        default=None,
        help="Output format: human or json (default: human)",
    ),
    click.option("--project", default=None, help="Configured project name"),
    click.option(
        "--token",
        default=None,
        help="Rollbar project token (overrides configured project token)",
    ),
    click.option("--limit", type=int, default=None, help="Maximum number of issues to show (default: 10)"),
    click.option("--env", "environment", default=None, help="Filter by environment"),
    click.option("--status", default=None, help="Filter by status"),
    click.option("--since", default=None, help="Filter by last seen time (RFC3339 or unix seconds)"),
    click.option("--until", default=None, help="Filter by last seen time (RFC3339 or unix seconds)"),
    click.option("--min-occurrences", default=None, help="Filter by minimum occurrence count"),
    click.option("--max-occurrences", default=None, help="Filter by maximum occurrence count"),
]


def issue_options(func: Callable[..., Any]) -> Callable[..., Any]:
    for option in reversed(_ISSUE_OPTIONS):
        func = option(func)
    return func


def setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@click.group(invoke_without_command=True)
@issue_options
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.version_option(package_name="rollbaz")
@click.pass_context
def main(ctx: click.Context, debug: bool, **flags: Any) -> None:
    """rollbaz - fast Rollbar triage from your terminal.

    Without a subcommand, lists the most recently seen active issues.
    """
    load_dotenv()
    ctx.ensure_object(dict)
    config = ctx.obj.setdefault("config", AppConfig.from_env())
    ctx.obj.setdefault("client_factory", RollbarClient)
    setup_logging(debug or config.debug)

    ctx.obj["flags"] = RootFlags().merged(flags)

    if ctx.invoked_subcommand is None:
        ctx.invoke(recent_command)


# ============================================================================
# Helpers
# ============================================================================


def get_flags(ctx: click.Context, overrides: dict[str, Any] | None = None) -> RootFlags:
    flags: RootFlags = ctx.obj["flags"]
    return flags.merged(overrides or {})


def get_store(ctx: click.Context) -> ConfigStore:
    config: AppConfig = ctx.obj["config"]
    return ConfigStore(config.config_path)


def resolve_access_token(ctx: click.Context, flags: RootFlags) -> str:
    """Token precedence: --token, configured project, ROLLBAR_ACCESS_TOKEN."""
    if flags.token:
        return flags.token

    try:
        token, project = get_store(ctx).resolve_token(flags.project)
        logger.debug(f"Using token of project {project}")
        return token
    except RollbazError as e:
        logger.debug(f"No configured token: {e}")

    config: AppConfig = ctx.obj["config"]
    if config.access_token:
        return config.access_token

    if flags.project:
        raise ConfigError(
            f'project "{flags.project}" not configured and ROLLBAR_ACCESS_TOKEN is missing'
        )
    raise ConfigError(
        'no token available: add a project via "rollbaz project add ..." '
        "or set ROLLBAR_ACCESS_TOKEN"
    )


def build_service(ctx: click.Context, token: str) -> IssueService:
    config: AppConfig = ctx.obj["config"]
    client = ctx.obj["client_factory"](
        token, base_url=config.base_url, timeout=config.request_timeout
    )
    return IssueService(client)


def run_with_deadline(
    operation: Callable[[], Awaitable[T]], timeout: float, name: str
) -> T:
    """Run one command's API calls under a single overall deadline."""

    async def _run() -> T:
        try:
            async with asyncio.timeout(timeout):
                return await operation()
        except TimeoutError as e:
            raise TransportError(f"{name} timed out after {timeout:g}s") from e

    return asyncio.run(_run())


def fail(error: RollbazError, token: str = "") -> click.ClickException:
    return click.ClickException(redact_string(str(error), token))


def execute(
    ctx: click.Context,
    flags: RootFlags,
    name: str,
    message: str,
    action: Callable[[IssueService], Awaitable[T]],
) -> tuple[T, str]:
    """Resolve the token, build the service and run ``action`` against it."""
    config: AppConfig = ctx.obj["config"]
    token = ""
    try:
        token = resolve_access_token(ctx, flags)
        service = build_service(ctx, token)
        with progress(flags.output_format, message):
            result = run_with_deadline(
                lambda: action(service), config.command_timeout, name
            )
    except RollbazError as e:
        raise fail(e, token) from e

    return result, token


def parse_filter_time(value: str) -> datetime | None:
    if not value:
        return None

    if UNIX_SECONDS_PATTERN.match(value):
        seconds = int(value)
        if seconds < 0:
            raise ValidationError("unix seconds must be non-negative")
        try:
            return datetime.fromtimestamp(seconds, UTC)
        except (OverflowError, OSError, ValueError) as e:
            raise ValidationError(f"unix seconds out of range: {value}") from e

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f'parse rfc3339: invalid time "{value}"') from e
    if parsed.tzinfo is None:
        raise ValidationError(f'parse rfc3339: missing timezone offset in "{value}"')

    return parsed.astimezone(UTC)


def parse_optional_uint64(value: str) -> int | None:
    if not value:
        return None
    return parse_uint64(value)


def _parse_flag(parser: Callable[[str], T], value: str, flag: str) -> T:
    try:
        return parser(value)
    except ValidationError as e:
        raise e.with_context(f"parse {flag}") from e


def parse_issue_filters(flags: RootFlags) -> IssueFilters:
    filters = IssueFilters(
        environment=flags.environment,
        status=flags.status,
        since=_parse_flag(parse_filter_time, flags.since, "--since"),
        until=_parse_flag(parse_filter_time, flags.until, "--until"),
        min_occurrences=_parse_flag(
            parse_optional_uint64, flags.min_occurrences, "--min-occurrences"
        ),
        max_occurrences=_parse_flag(
            parse_optional_uint64, flags.max_occurrences, "--max-occurrences"
        ),
    )
    validate_issue_filters(filters)
    return filters


def validate_issue_filters(filters: IssueFilters) -> None:
    if filters.since and filters.until and filters.since > filters.until:
        raise ValidationError("--since must be before or equal to --until")
    if (
        filters.min_occurrences is not None
        and filters.max_occurrences is not None
        and filters.min_occurrences > filters.max_occurrences
    ):
        raise ValidationError("--min-occurrences must be <= --max-occurrences")


def parse_duration(value: str) -> int | None:
    """Parse ``90s``, ``15m``, ``2h``, ``1d`` or combinations like ``1h30m``."""
    if not value:
        return None

    match = DURATION_PATTERN.match(value.strip())
    if not match or not any(match.groupdict().values()):
        raise ValidationError(
            f'invalid duration "{value}": use whole units such as 90s, 15m, 2h or 1d'
        )

    parts = {key: int(amount or 0) for key, amount in match.groupdict().items()}
    seconds = (
        parts["days"] * 86400
        + parts["hours"] * 3600
        + parts["minutes"] * 60
        + parts["seconds"]
    )
    if seconds <= 0:
        raise ValidationError(f'invalid duration "{value}": must be greater than 0')
    return seconds


def parse_counter(value: str) -> int:
    try:
        return parse_item_counter(value)
    except ValidationError as e:
        raise fail(e) from e


def require_confirmation(yes: bool) -> None:
    if not yes:
        raise fail(ValidationError("confirmation required: rerun with --yes"))


# ============================================================================
# Issue commands
# ============================================================================


def run_issue_list(
    ctx: click.Context,
    overrides: dict[str, Any],
    name: str,
    load: Callable[[IssueService, int, IssueFilters], Awaitable[list]],
) -> None:
    flags = get_flags(ctx, overrides)
    try:
        filters = parse_issue_filters(flags)
    except ValidationError as e:
        raise fail(e, flags.token) from e

    issues, token = execute(
        ctx,
        flags,
        name,
        "Loading issues",
        lambda service: load(service, flags.limit, filters),
    )
    output_issue_list(issues, flags.output_format, token)


@main.command("active")
@issue_options
@click.pass_context
def active_command(ctx: click.Context, **overrides: Any) -> None:
    """List active issues."""
    run_issue_list(
        ctx, overrides, "active", lambda service, limit, filters: service.active(limit, filters)
    )


@main.command("recent")
@issue_options
@click.pass_context
def recent_command(ctx: click.Context, **overrides: Any) -> None:
    """List most recently seen active issues."""
    run_issue_list(
        ctx, overrides, "recent", lambda service, limit, filters: service.recent(limit, filters)
    )


@main.command("show")
@click.argument("counter")
@issue_options
@click.pass_context
def show_command(ctx: click.Context, counter: str, **overrides: Any) -> None:
    """Show details for one item counter."""
    item_counter = parse_counter(counter)
    flags = get_flags(ctx, overrides)

    detail, token = execute(
        ctx, flags, "show", "Loading issue detail", lambda service: service.show(item_counter)
    )
    output_issue_detail(detail, flags.output_format, token)


@main.command("resolve")
@click.argument("counter")
@click.option("--resolved-in-version", default="", help="Version the issue was fixed in")
@click.option("--yes", "-y", is_flag=True, help="Confirm the change")
@issue_options
@click.pass_context
def resolve_command(
    ctx: click.Context, counter: str, resolved_in_version: str, yes: bool, **overrides: Any
) -> None:
    """Mark an item as resolved."""
    item_counter = parse_counter(counter)
    require_confirmation(yes)
    flags = get_flags(ctx, overrides)

    result, token = execute(
        ctx,
        flags,
        "resolve",
        "Resolving issue",
        lambda service: service.resolve(item_counter, resolved_in_version),
    )
    output_action(result, flags.output_format, token)


@main.command("reopen")
@click.argument("counter")
@click.option("--yes", "-y", is_flag=True, help="Confirm the change")
@issue_options
@click.pass_context
def reopen_command(ctx: click.Context, counter: str, yes: bool, **overrides: Any) -> None:
    """Reopen a resolved or muted item."""
    item_counter = parse_counter(counter)
    require_confirmation(yes)
    flags = get_flags(ctx, overrides)

    result, token = execute(
        ctx, flags, "reopen", "Reopening issue", lambda service: service.reopen(item_counter)
    )
    output_action(result, flags.output_format, token)


@main.command("mute")
@click.argument("counter")
@click.option("--for", "duration", default="", help="Snooze duration, e.g. 30m, 2h, 1d")
@click.option("--yes", "-y", is_flag=True, help="Confirm the change")
@issue_options
@click.pass_context
def mute_command(
    ctx: click.Context, counter: str, duration: str, yes: bool, **overrides: Any
) -> None:
    """Mute an item, optionally for a limited time."""
    item_counter = parse_counter(counter)
    try:
        duration_seconds = parse_duration(duration)
    except ValidationError as e:
        raise fail(e) from e
    require_confirmation(yes)
    flags = get_flags(ctx, overrides)

    result, token = execute(
        ctx,
        flags,
        "mute",
        "Muting issue",
        lambda service: service.mute(item_counter, duration_seconds),
    )
    output_action(result, flags.output_format, token)


# ============================================================================
# Project commands
# ============================================================================


@main.group("project")
def project_group() -> None:
    """Manage configured Rollbar projects."""


@project_group.command("add")
@click.argument("name")
@click.option("--token", required=True, help="Project token")
@click.pass_context
def project_add(ctx: click.Context, name: str, token: str) -> None:
    """Add or update a project token."""
    try:
        get_store(ctx).add_project(name, token)
    except RollbazError as e:
        raise fail(e.with_context("add project"), token) from e


@project_group.command("list")
@click.pass_context
def project_list(ctx: click.Context) -> None:
    """List configured projects."""
    try:
        config = get_store(ctx).load()
    except RollbazError as e:
        raise fail(e.with_context("load config")) from e

    if get_flags(ctx).output_format == OutputFormat.JSON:
        output_json(
            {
                "active_project": config.active_project,
                "projects": [project.name for project in config.projects],
            }
        )
        return

    if not config.projects:
        click.echo("no configured projects")
        return

    for project in config.projects:
        prefix = "* " if project.name == config.active_project else "  "
        click.echo(f"{prefix}{project.name}")


@project_group.command("use")
@click.argument("name")
@click.pass_context
def project_use(ctx: click.Context, name: str) -> None:
    """Set active project."""
    try:
        get_store(ctx).use_project(name)
    except RollbazError as e:
        raise fail(e.with_context("use project")) from e


@project_group.command("next")
@click.pass_context
def project_next(ctx: click.Context) -> None:
    """Cycle active project."""
    try:
        name = get_store(ctx).cycle_project()
    except RollbazError as e:
        raise fail(e.with_context("cycle project")) from e
    click.echo(name)


@project_group.command("remove")
@click.argument("name", required=False)
@click.option("--all", "remove_all", is_flag=True, help="Remove all configured projects and tokens")
@click.pass_context
def project_remove(ctx: click.Context, name: str | None, remove_all: bool) -> None:
    """Remove a configured project, or all of them with --all."""
    if remove_all and name:
        raise click.UsageError("cannot use --all with a project name")
    if not remove_all and not name:
        raise click.UsageError("specify a project name or use --all")

    store = get_store(ctx)
    try:
        if remove_all:
            store.remove_all_projects()
        else:
            store.remove_project(name)
    except RollbazError as e:
        operation = "remove projects" if remove_all else "remove project"
        raise fail(e.with_context(operation)) from e


def run(args: list[str] | None = None) -> int:
    """Console entry point; every failure exits with status 1."""
    try:
        result = main.main(args=args, prog_name="rollbaz", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        return 1
    except click.exceptions.Abort:
        output_error("Aborted!")
        return 1
    except RollbazError as e:
        output_error(f"Error: {redact_string(str(e))}")
        return 1

    return result if isinstance(result, int) else 0
