"""
Issue triage operations built on the Rollbar client
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import Protocol, TypeVar

from rollbaz.errors import RollbazError, ValidationError
from rollbaz.models.issue import (
    IssueDetail,
    IssueFilters,
    IssueSummary,
    ItemActionResult,
)
from rollbaz.models.rollbar import Item, ItemInstance, ItemPatch
from rollbaz.services.issue_filter import filter_items, sort_recent
from rollbaz.services.summary import UNKNOWN, main_error

logger = logging.getLogger(__name__)

MAX_RESOLVED_VERSION_LENGTH = 40

T = TypeVar("T")


class RollbarAPI(Protocol):
    async def resolve_item_id_by_counter(self, counter: int) -> int: ...

    async def get_item(self, item_id: int) -> Item: ...

    async def update_item(self, item_id: int, patch: ItemPatch) -> None: ...

    async def get_latest_instance(self, item_id: int) -> ItemInstance | None: ...

    async def list_active_items(self, limit: int = 0) -> list[Item]: ...

    async def list_items(self, status: str = "", page: int = 0) -> list[Item]: ...


class IssueService:
    def __init__(self, api: RollbarAPI):
        self.api = api

    async def active(
        self, limit: int, filters: IssueFilters | None = None
    ) -> list[IssueSummary]:
        items = await _in_context(self.api.list_active_items(limit), "list active items")
        items = filter_items(items, filters or IssueFilters())

        return [IssueSummary.from_item(item) for item in items]

    async def recent(
        self, limit: int, filters: IssueFilters | None = None
    ) -> list[IssueSummary]:
        """Active items ordered by last occurrence, then occurrence count"""
        items = await _in_context(self.api.list_items("active", 1), "list recent items")
        items = filter_items(items, filters or IssueFilters())
        items = sort_recent(items, limit)

        return [IssueSummary.from_item(item) for item in items]

    async def show(self, counter: int) -> IssueDetail:
        """Fetch an item and its latest instance, and extract the main error.

        The item and the instance are fetched concurrently; if either fails
        the other is cancelled and the error propagates.
        """
        item_id = await self._resolve_item_id(counter)

        item_task = asyncio.create_task(
            _in_context(self.api.get_item(item_id), "get item")
        )
        instance_task = asyncio.create_task(
            _in_context(self.api.get_latest_instance(item_id), "get latest instance")
        )
        try:
            item, instance = await asyncio.gather(item_task, instance_task)
        except BaseException:
            for task in (item_task, instance_task):
                task.cancel()
            await asyncio.gather(item_task, instance_task, return_exceptions=True)
            raise

        message = UNKNOWN
        instance_raw = None
        if instance is not None:
            message = main_error(instance.body, instance.data)
            instance_raw = instance.raw
        if message == UNKNOWN and item.title.strip():
            message = item.title

        return IssueDetail(
            issue=IssueSummary.from_item(item),
            main_error=message,
            item_raw=item.raw,
            instance=instance,
            instance_raw=instance_raw,
        )

    async def resolve(self, counter: int, resolved_in_version: str = "") -> ItemActionResult:
        version = resolved_in_version.strip()
        if len(version) > MAX_RESOLVED_VERSION_LENGTH:
            raise ValidationError(
                f"resolved_in_version must be <= {MAX_RESOLVED_VERSION_LENGTH} characters"
            )

        patch = ItemPatch(status="resolved", resolved_in_version=version)
        return await self._update_item_and_fetch(counter, patch, "resolved")

    async def reopen(self, counter: int) -> ItemActionResult:
        return await self._update_item_and_fetch(
            counter, ItemPatch(status="active"), "reopened"
        )

    async def mute(
        self, counter: int, duration_seconds: int | None = None
    ) -> ItemActionResult:
        patch = ItemPatch(
            status="muted",
            snooze_enabled=True,
            snooze_expiration_in_seconds=duration_seconds,
        )
        return await self._update_item_and_fetch(counter, patch, "muted")

    async def _update_item_and_fetch(
        self, counter: int, patch: ItemPatch, action: str
    ) -> ItemActionResult:
        item_id = await self._resolve_item_id(counter)

        logger.info(f"Marking item {counter} as {patch.status}")
        await _in_context(self.api.update_item(item_id, patch), "update item")
        item = await _in_context(self.api.get_item(item_id), "get item")

        return ItemActionResult(action=action, issue=IssueSummary.from_item(item))

    async def _resolve_item_id(self, counter: int) -> int:
        return await _in_context(
            self.api.resolve_item_id_by_counter(counter), "resolve item id"
        )


async def _in_context(operation: Awaitable[T], name: str) -> T:
    try:
        return await operation
    except RollbazError as e:
        raise e.with_context(name) from e
