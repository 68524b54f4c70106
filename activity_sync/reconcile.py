from __future__ import annotations

import logging

from .errors import FetchError, SlotCodecError
from .models import ActivityAggregate, ActivityBatch, PersistedRecord
from .slots import decode_slots, duration_minutes, encode_slots, merge_slot_maps

logger = logging.getLogger(__name__)


def build_record(aggregate: ActivityAggregate, existing: PersistedRecord | None = None) -> PersistedRecord:
    """Produce the record to upsert, summing into ``existing`` when present."""
    slots = dict(aggregate.slots)
    name = aggregate.natural_key
    record_id = None

    if existing is not None:
        try:
            stored = decode_slots(existing.activity)
        except SlotCodecError as exc:
            raise FetchError(f"Stored record {existing.name!r} has unreadable activity: {exc}") from exc
        slots = merge_slot_maps(stored, slots)
        # Keep the stored identity so the upsert updates in place.
        name = existing.name
        record_id = existing.record_id

    return PersistedRecord(
        name=name,
        day=aggregate.day,
        activity=encode_slots(slots),
        participant=aggregate.participant,
        activity_duration=duration_minutes(slots),
        record_type=aggregate.kind,
        group_id=aggregate.group_id,
        record_id=record_id,
    )


async def reconcile(batch: ActivityBatch, gateway) -> list[PersistedRecord]:
    """Merge a batch with what the store already holds for its dates.

    Counts are summed, never overwritten, so uploading the same file twice
    doubles its slots. Raises FetchError when the existing state can't be read.
    An aggregate whose name is already taken by a stored or earlier record of
    the other kind is skipped.
    """
    if batch.is_empty:
        return []

    existing = await gateway.search_by_dates(list(batch.dates))
    # The store keeps one record per Name, whatever its type.
    index: dict[str, PersistedRecord] = {record.name: record for record in existing}

    records: list[PersistedRecord] = []
    names: set[str] = set()
    for aggregate in [*batch.participants.values(), *batch.groups.values()]:
        key = aggregate.natural_key
        stored = index.get(key)
        if stored is not None and stored.record_type is not aggregate.kind:
            logger.warning(
                "%s record %r collides with a stored %s record, not saving it",
                aggregate.kind.value,
                key,
                stored.record_type.value,
            )
            continue
        if key in names:
            logger.warning("%s record %r collides with another record in this upload, not saving it", aggregate.kind.value, key)
            continue

        names.add(key)
        records.append(build_record(aggregate, stored))

    logger.info(
        "Reconciled %d records against %d stored records for %s",
        len(records),
        len(existing),
        ", ".join(batch.dates),
    )
    return records
