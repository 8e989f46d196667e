"""
Issue views returned by the application service
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from rollbaz.models.rollbar import Item, ItemInstance


class IssueSummary(BaseModel):
    item_id: int
    counter: int
    title: str = ""
    status: str = ""
    environment: str = ""
    last_occurrence_timestamp: int | None = None
    occurrences: int | None = None
    raw: Any = None

    @classmethod
    def from_item(cls, item: Item) -> "IssueSummary":
        occurrences = item.total_occurrences
        if occurrences is None:
            occurrences = item.occurrences

        return cls(
            item_id=item.id,
            counter=item.counter,
            title=item.title,
            status=item.status,
            environment=item.environment,
            last_occurrence_timestamp=item.last_occurrence_timestamp,
            occurrences=occurrences,
            raw=item.raw,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class IssueDetail(BaseModel):
    issue: IssueSummary
    main_error: str
    item_raw: Any = None
    instance: ItemInstance | None = None
    instance_raw: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue": self.issue.to_dict(),
            "main_error": self.main_error,
            "item_raw": self.item_raw,
            "instance": (
                self.instance.model_dump(mode="json") if self.instance else None
            ),
            "instance_raw": self.instance_raw,
        }


class IssueFilters(BaseModel):
    """Optional predicates over issue lists; unset fields match everything"""

    environment: str = ""
    status: str = ""
    since: datetime | None = None
    until: datetime | None = None
    min_occurrences: int | None = Field(default=None, ge=0)
    max_occurrences: int | None = Field(default=None, ge=0)

    def normalized(self) -> "IssueFilters":
        return self.model_copy(
            update={
                "environment": self.environment.strip(),
                "status": self.status.strip(),
            }
        )

    def is_empty(self) -> bool:
        return (
            not self.environment
            and not self.status
            and self.since is None
            and self.until is None
            and self.min_occurrences is None
            and self.max_occurrences is None
        )


class ItemActionResult(BaseModel):
    action: str
    issue: IssueSummary

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "issue": self.issue.to_dict()}
