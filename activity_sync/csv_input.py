from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass

from .errors import ParseError

logger = logging.getLogger(__name__)

EXECUTOR_FALLBACK_INDEX = 6
TIMESTAMP_INDEX = 7

# Exported reports label columns in the account's language.
EXECUTOR_LABELS = ("performed by", "выполнил", "ausgeführt von")
MODULE_LABELS = ("module", "модуль", "modul")
ACTION_LABELS = ("action", "действие", "aktion")


@dataclass(frozen=True, slots=True)
class ColumnMap:
    executor: int
    module: int | None
    action: int | None
    timestamp: int = TIMESTAMP_INDEX


def tokenize_rows(text: str) -> list[list[str]]:
    """Split comma-delimited text into rows, dropping blank lines.

    Raises ParseError on malformed quoting; no partial result is returned.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.reader(io.StringIO(text, newline=""), delimiter=",", quotechar='"', strict=True)
    rows: list[list[str]] = []
    try:
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            rows.append(row)
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV near line {reader.line_num}: {exc}") from exc
    return rows


def _find_column(header: list[str], labels: tuple[str, ...]) -> int | None:
    wanted = {label.strip().lower() for label in labels}
    for index, cell in enumerate(header):
        if cell.strip().lower() in wanted:
            return index
    return None


def resolve_columns(
    header: list[str],
    *,
    executor_labels: tuple[str, ...] = EXECUTOR_LABELS,
    module_labels: tuple[str, ...] = MODULE_LABELS,
    action_labels: tuple[str, ...] = ACTION_LABELS,
) -> ColumnMap:
    """Locate the executor, module and action columns by header label.

    Missing module/action columns disable their filters; a missing executor
    column falls back to its fixed position in the standard export.
    """
    executor = _find_column(header, executor_labels)
    if executor is None:
        logger.debug("Executor header not found, using column %d", EXECUTOR_FALLBACK_INDEX)
        executor = EXECUTOR_FALLBACK_INDEX

    columns = ColumnMap(
        executor=executor,
        module=_find_column(header, module_labels),
        action=_find_column(header, action_labels),
    )
    logger.debug("Resolved columns: %s", columns)
    return columns
