from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from typing import Protocol

from .db import Database
from .errors import DirectoryLookupError, FetchError, UpsertError
from .models import Group, PersistedRecord, UpsertAck

NATURAL_KEY_FIELDS = ("Name",)


class RecordGateway(Protocol):
    async def search_by_dates(self, dates: Sequence[str]) -> list[PersistedRecord]: ...

    async def upsert(
        self,
        records: Sequence[PersistedRecord],
        duplicate_check_fields: Sequence[str],
    ) -> UpsertAck: ...


class DirectoryProvider(Protocol):
    async def fetch_groups(self) -> list[Group]: ...


class SqliteGateway:
    """Record store and directory provider backed by the local database."""

    def __init__(self, db: Database, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.logger = logger or logging.getLogger(__name__)

    async def search_by_dates(self, dates: Sequence[str]) -> list[PersistedRecord]:
        try:
            records = self.db.search_records_by_dates(dates)
        except sqlite3.Error as exc:
            raise FetchError(f"Could not load records for {', '.join(dates)}: {exc}") from exc
        self.logger.debug("Fetched %d records for %d dates", len(records), len(dates))
        return records

    async def upsert(
        self,
        records: Sequence[PersistedRecord],
        duplicate_check_fields: Sequence[str] = NATURAL_KEY_FIELDS,
    ) -> UpsertAck:
        if tuple(duplicate_check_fields) != NATURAL_KEY_FIELDS:
            raise UpsertError(f"Unsupported duplicate check fields: {list(duplicate_check_fields)}")

        try:
            ack = self.db.upsert_records(records)
        except sqlite3.Error as exc:
            raise UpsertError(f"Could not save {len(records)} records: {exc}") from exc
        self.logger.info("Upserted %d records (%d new, %d updated)", ack.total, ack.inserted, ack.updated)
        return ack

    async def fetch_groups(self) -> list[Group]:
        try:
            return self.db.list_groups()
        except sqlite3.Error as exc:
            raise DirectoryLookupError(f"Could not read group directory: {exc}") from exc
