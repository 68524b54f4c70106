from __future__ import annotations

import logging
from collections.abc import Iterable

from .classifier import ClassifierRules, classify_row
from .csv_input import ColumnMap
from .directory import Directory
from .models import ActivityAggregate, ActivityBatch, Group, RecordKind, SkippedRow


class ActivityAggregator:
    """Buckets accepted rows into per-participant and per-group slot maps."""

    def __init__(
        self,
        directory: Directory,
        rules: ClassifierRules | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.directory = directory
        self.rules = rules or ClassifierRules()
        self.logger = logger or logging.getLogger(__name__)

    def aggregate(self, rows: Iterable[list[str]], columns: ColumnMap, *, first_index: int = 1) -> ActivityBatch:
        batch = ActivityBatch()
        # One directory lookup per executor name per batch.
        group_cache: dict[str, Group | None] = {}

        for row_index, row in enumerate(rows, start=first_index):
            result = classify_row(row, columns, self.rules, row_index)
            if isinstance(result, SkippedRow):
                self.logger.debug("Skipping row %d: %s %s", result.row_index, result.reason, result.detail)
                batch.skipped.append(result)
                continue

            batch.accepted_rows += 1
            if result.day not in batch.dates:
                batch.dates.append(result.day)

            participant = batch.participants.get((result.day, result.executor))
            if participant is None:
                participant = ActivityAggregate(day=result.day, participant=result.executor)
                batch.participants[(result.day, result.executor)] = participant
            participant.add(result.slot)

            if result.executor not in group_cache:
                group_cache[result.executor] = self.directory.find_group(result.executor)
            group = group_cache[result.executor]
            if group is None:
                continue

            aggregate = batch.groups.get((result.day, group.id))
            if aggregate is None:
                aggregate = ActivityAggregate(
                    day=result.day,
                    participant=group.name,
                    kind=RecordKind.GROUP,
                    group_id=group.id,
                )
                batch.groups[(result.day, group.id)] = aggregate
            aggregate.add(result.slot)

        self.logger.info(
            "Aggregated %d rows into %d participant and %d group aggregates (%d skipped)",
            batch.accepted_rows,
            len(batch.participants),
            len(batch.groups),
            len(batch.skipped),
        )
        return batch
