from __future__ import annotations

import json
from collections.abc import Mapping

from .errors import SlotCodecError

SLOT_MINUTES = 10

# 144 canonical window starts per day: "00:00", "00:10", ... "23:50".
ALL_SLOT_KEYS = tuple(
    f"{hour:02}:{minute:02}"
    for hour in range(24)
    for minute in range(0, 60, SLOT_MINUTES)
)
_SLOT_KEY_SET = frozenset(ALL_SLOT_KEYS)


def is_slot_key(value: str) -> bool:
    return value in _SLOT_KEY_SET


def parse_clock(value: str) -> tuple[int, int]:
    """Parse ``H:MM`` or ``HH:MM`` (anything after the minutes is ignored)."""
    text = value.strip()
    hour_part, sep, rest = text.partition(":")
    minute_part = rest[:2]
    if not sep or not hour_part.isdigit() or len(minute_part) != 2 or not minute_part.isdigit():
        raise ValueError(f"Invalid time of day: {value!r}")

    hour, minute = int(hour_part), int(minute_part)
    if hour > 23 or minute > 59:
        raise ValueError(f"Time of day out of range: {value!r}")
    return hour, minute


def slot_key(value: str) -> str:
    """Round a clock time down to the start of its 10-minute window."""
    hour, minute = parse_clock(value)
    return f"{hour:02}:{minute - minute % SLOT_MINUTES:02}"


def duration_minutes(slots: Mapping[str, int]) -> int:
    return sum(1 for count in slots.values() if count > 0) * SLOT_MINUTES


def merge_slot_maps(first: Mapping[str, int], second: Mapping[str, int]) -> dict[str, int]:
    """Sum two slot maps per key. Neither input is modified."""
    merged = dict(first)
    for key, count in second.items():
        merged[key] = merged.get(key, 0) + count
    return merged


def encode_slots(slots: Mapping[str, int]) -> str:
    """Serialize a slot map to the text blob stored in ``Activity``."""
    return json.dumps({key: int(slots[key]) for key in sorted(slots)})


def decode_slots(blob: str | None) -> dict[str, int]:
    """Parse a stored ``Activity`` blob, validating every key and count."""
    if blob is None or not blob.strip():
        return {}

    try:
        raw = json.loads(blob)
    except json.JSONDecodeError as exc:
        raise SlotCodecError(f"Activity blob is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise SlotCodecError("Activity blob must be a JSON object")

    slots: dict[str, int] = {}
    for key, count in raw.items():
        if not is_slot_key(key):
            raise SlotCodecError(f"Invalid slot key in activity blob: {key!r}")
        # bool is an int subclass; reject it explicitly.
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise SlotCodecError(f"Invalid count for slot {key}: {count!r}")
        slots[key] = count
    return slots
