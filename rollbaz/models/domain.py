from rollbaz.errors import ValidationError

MAX_UINT64 = 2**64 - 1


class ItemCounter(int):
    """Stable, human-facing item number within a project"""


def parse_uint64(value: str) -> int:
    text = value.strip()
    if not text.isascii() or not text.isdigit():
        raise ValidationError(f'invalid unsigned integer "{value}"')
    parsed = int(text)
    if parsed > MAX_UINT64:
        raise ValidationError(f'value out of range "{value}"')
    return parsed


def parse_item_counter(value: str) -> ItemCounter:
    try:
        counter = parse_uint64(value)
    except ValidationError as e:
        raise e.with_context("parse item counter") from e
    if counter == 0:
        raise ValidationError("item counter must be greater than 0")
    return ItemCounter(counter)
