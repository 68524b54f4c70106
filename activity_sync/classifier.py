from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .csv_input import ColumnMap
from .models import ClassifiedRow, SkippedRow
from .slots import slot_key

SYSTEM_EXECUTOR = "System Workflow"
EXCLUDED_MODULE = "Deluge"
CANCELLED_ACTION = "Cancelled"

# Skip reasons reported in upload summaries.
EMPTY_EXECUTOR = "empty-executor"
DENYLISTED_EXECUTOR = "denylisted-executor"
SYSTEM_EXECUTOR_ROW = "system-executor"
DENYLISTED_MODULE = "denylisted-module"
CANCELLED_ACTION_ROW = "cancelled-action"
SHORT_ROW = "short-row"
MISSING_TIMESTAMP = "missing-timestamp"
MALFORMED_TIMESTAMP = "malformed-timestamp"
MALFORMED_DATE = "malformed-date"
MALFORMED_TIME = "malformed-time"


@dataclass(frozen=True, slots=True)
class ClassifierRules:
    system_executor: str = SYSTEM_EXECUTOR
    excluded_executors: frozenset[str] = frozenset()
    excluded_module: str = EXCLUDED_MODULE
    cancelled_action: str = CANCELLED_ACTION


def _cell(row: list[str], index: int | None) -> str:
    if index is None or index >= len(row):
        return ""
    return row[index].strip()


def parse_export_date(value: str) -> str:
    """Convert an export date ``DD.MM.YYYY`` to ISO ``YYYY-MM-DD``."""
    parts = value.split(".")
    if len(parts) != 3 or not all(part.strip().isdigit() for part in parts):
        raise ValueError(f"Expected DD.MM.YYYY, got {value!r}")

    day, month, year = (int(part) for part in parts)
    return date(year, month, day).isoformat()


def classify_row(
    row: list[str],
    columns: ColumnMap,
    rules: ClassifierRules,
    row_index: int,
) -> ClassifiedRow | SkippedRow:
    """Accept a row as one countable action, or say why it is skipped."""
    executor = _cell(row, columns.executor)
    if not executor:
        return SkippedRow(row_index, EMPTY_EXECUTOR)
    if executor == rules.system_executor:
        return SkippedRow(row_index, SYSTEM_EXECUTOR_ROW, executor)
    if executor in rules.excluded_executors:
        return SkippedRow(row_index, DENYLISTED_EXECUTOR, executor)

    if columns.module is not None and _cell(row, columns.module) == rules.excluded_module:
        return SkippedRow(row_index, DENYLISTED_MODULE, rules.excluded_module)
    if columns.action is not None and _cell(row, columns.action) == rules.cancelled_action:
        return SkippedRow(row_index, CANCELLED_ACTION_ROW, rules.cancelled_action)

    if len(row) <= columns.timestamp:
        return SkippedRow(row_index, SHORT_ROW, f"{len(row)} columns")

    timestamp = row[columns.timestamp]
    if not isinstance(timestamp, str) or not timestamp.strip():
        return SkippedRow(row_index, MISSING_TIMESTAMP)

    date_part, sep, time_part = timestamp.strip().partition(" ")
    if not sep or not time_part.strip():
        return SkippedRow(row_index, MALFORMED_TIMESTAMP, timestamp)

    try:
        day = parse_export_date(date_part)
    except ValueError:
        return SkippedRow(row_index, MALFORMED_DATE, date_part)

    try:
        slot = slot_key(time_part.strip()[:5])
    except ValueError:
        return SkippedRow(row_index, MALFORMED_TIME, time_part)

    return ClassifiedRow(row_index=row_index, executor=executor, day=day, slot=slot)
