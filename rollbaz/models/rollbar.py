"""
Rollbar wire models

The API is inconsistent across schema versions: identifiers arrive as JSON
strings or numbers, levels as names or numeric codes, and list results either
bare or wrapped in an object. Everything here decodes those variants into one
stable shape.
"""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from rollbaz.errors import DecodeError
from rollbaz.models.domain import MAX_UINT64

LEVEL_NAMES = {
    10: "debug",
    20: "info",
    30: "warning",
    40: "error",
    50: "critical",
}


def decode_flexible_uint64(value: Any) -> int:
    """Decode an unsigned 64-bit integer sent as a JSON number or digit string.

    ``null`` decodes to 0. Anything else that is not a non-negative integral
    value raises DecodeError.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        raise DecodeError(f"decode uint64: unexpected boolean {value!r}")

    if isinstance(value, str):
        if not value.isascii() or not value.isdigit():
            raise DecodeError(f'parse string uint64: invalid syntax "{value}"')
        parsed = int(value)
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    else:
        raise DecodeError(f"decode uint64: cannot decode {value!r}")

    if parsed < 0 or parsed > MAX_UINT64:
        raise DecodeError(f"decode uint64: {value!r} out of range")
    return parsed


def decode_flexible_level(value: Any) -> str:
    """Decode a severity level sent as a name or a numeric code.

    Unknown numeric codes degrade to their decimal text.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        raise DecodeError(f"decode level: unexpected boolean {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise DecodeError(f"decode level: non-integral level {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise DecodeError(f"decode level: cannot decode {value!r}")
    if value < 0:
        raise DecodeError(f"decode level: negative level {value}")

    return LEVEL_NAMES.get(value, str(value))


def _null_as_empty(value: Any) -> Any:
    return "" if value is None else value


FlexibleUint64 = Annotated[int, BeforeValidator(decode_flexible_uint64)]
FlexibleLevel = Annotated[str, BeforeValidator(decode_flexible_level)]
NullableStr = Annotated[str, BeforeValidator(_null_as_empty)]
Uint64 = Annotated[int, Field(ge=0, le=MAX_UINT64)]


class Item(BaseModel):
    """One Rollbar item (an issue / error group)"""

    id: FlexibleUint64 = 0
    project_id: FlexibleUint64 = 0
    counter: FlexibleUint64 = 0
    title: NullableStr = ""
    status: NullableStr = ""
    environment: NullableStr = ""
    level: FlexibleLevel = ""
    last_occurrence_id: Uint64 | None = None
    last_occurrence_timestamp: Uint64 | None = None
    occurrences: Uint64 | None = None
    total_occurrences: Uint64 | None = None
    raw: Any = Field(default=None, exclude=True)

    @property
    def effective_occurrences(self) -> int:
        if self.total_occurrences is not None:
            return self.total_occurrences
        if self.occurrences is not None:
            return self.occurrences
        return 0


class ItemInstance(BaseModel):
    """One occurrence of an item; ``body`` and ``data`` are free-form JSON"""

    id: FlexibleUint64 = 0
    timestamp: Uint64 | None = None
    body: Any = None
    data: Any = None
    raw: Any = Field(default=None, exclude=True)


class ItemPatch(BaseModel):
    status: str = ""
    resolved_in_version: str = ""
    snooze_enabled: bool | None = None
    snooze_expiration_in_seconds: int | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_defaults=True)


class ApiEnvelope(BaseModel):
    err: int = 0
    result: Any = None
    message: NullableStr = ""


class ItemByCounterResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: FlexibleUint64 = 0
    item_id: FlexibleUint64 = Field(default=0, alias="itemId")

    def resolved_id(self) -> int:
        if self.item_id != 0:
            return self.item_id
        if self.id != 0:
            return self.id
        raise DecodeError("item_by_counter result missing id")


class ItemsEnvelope(BaseModel):
    items: list[Item] | None = None


class InstancesEnvelope(BaseModel):
    instances: list[ItemInstance] | None = None


class TopActiveItem(BaseModel):
    item: Item


_item_list = TypeAdapter(list[Item])
_instance_list = TypeAdapter(list[ItemInstance])
_top_active_list = TypeAdapter(list[TopActiveItem])


def describe_validation_error(exc: PydanticValidationError) -> str:
    """Condense a pydantic error into ``<location>: <message>``"""
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def hydrate_item(item: Item, default_status: str = "") -> Item:
    update: dict[str, Any] = {}
    if default_status and not item.status:
        update["status"] = default_status
    if item.total_occurrences is None:
        update["total_occurrences"] = item.occurrences
    hydrated = item.model_copy(update=update)
    hydrated.raw = hydrated.model_dump(mode="json")
    return hydrated


def hydrate_instance(instance: ItemInstance) -> ItemInstance:
    hydrated = instance.model_copy()
    hydrated.raw = hydrated.model_dump(mode="json")
    return hydrated


def _decode_item_list(payload: Any) -> list[Item]:
    return _item_list.validate_python(payload)


def _decode_wrapped_items(payload: Any) -> list[Item]:
    return ItemsEnvelope.model_validate(payload).items or []


def _decode_instance_list(payload: Any) -> list[ItemInstance]:
    return _instance_list.validate_python(payload)


def _decode_wrapped_instances(payload: Any) -> list[ItemInstance]:
    return InstancesEnvelope.model_validate(payload).instances or []


def parse_items(payload: Any, default_status: str = "") -> list[Item]:
    """Normalize an items result that is either a bare list or ``{"items": [...]}``"""
    try:
        items = _decode_item_list(payload)
    except PydanticValidationError:
        try:
            items = _decode_wrapped_items(payload)
        except PydanticValidationError as e:
            raise DecodeError(
                f"decode wrapped items: {describe_validation_error(e)}"
            ) from e

    return [hydrate_item(item, default_status) for item in items]


def parse_instances(payload: Any) -> list[ItemInstance]:
    """Normalize an instances result that is either a bare list or ``{"instances": [...]}``"""
    try:
        instances = _decode_instance_list(payload)
    except PydanticValidationError:
        try:
            instances = _decode_wrapped_instances(payload)
        except PydanticValidationError as e:
            raise DecodeError(
                f"decode wrapped instances: {describe_validation_error(e)}"
            ) from e

    return [hydrate_instance(instance) for instance in instances]


def parse_top_active_items(payload: Any) -> list[Item]:
    """Normalize the top-active report, which wraps each entry as ``{"item": {...}}``"""
    try:
        wrapped = _top_active_list.validate_python(payload)
    except PydanticValidationError:
        return parse_items(payload, default_status="active")

    return [hydrate_item(entry.item, "active") for entry in wrapped]


def parse_item(payload: Any) -> Item:
    try:
        item = Item.model_validate(payload)
    except PydanticValidationError as e:
        raise DecodeError(describe_validation_error(e)) from e

    hydrated = hydrate_item(item)
    hydrated.raw = payload
    return hydrated


def parse_item_by_counter(payload: Any) -> int:
    try:
        result = ItemByCounterResult.model_validate(payload)
    except PydanticValidationError as e:
        raise DecodeError(
            f"decode item_by_counter result: {describe_validation_error(e)}"
        ) from e

    try:
        return result.resolved_id()
    except DecodeError as e:
        raise e.with_context("resolve item_id") from e
