from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from pathlib import Path

from .models import Group, Member, PersistedRecord, UpsertAck

_RECORD_COLUMNS = """
    id AS id,
    name AS Name,
    date AS Date,
    activity AS Activity,
    participant AS Participant,
    activity_duration AS Activity_Duration,
    record_type AS Record_Type,
    group_id AS Group_ID
"""


class Database:
    """Thin SQLite access layer for activity records and the group directory."""

    def __init__(self, db_path: str | Path) -> None:
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._closed = False

    def close(self) -> None:
        if self._closed:
            return
        self._conn.close()
        self._closed = True

    def initialize(self) -> None:
        # activity_records: one row per (date, participant or group), keyed by name.
        # directory_groups / directory_members: reference data for group lookup.
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS activity_records (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              name TEXT NOT NULL UNIQUE,
              date TEXT NOT NULL,
              activity TEXT NOT NULL DEFAULT '',
              participant TEXT NOT NULL,
              activity_duration INTEGER NOT NULL DEFAULT 0,
              record_type TEXT NOT NULL,
              group_id TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_activity_records_date
              ON activity_records (date);

            CREATE TABLE IF NOT EXISTS directory_groups (
              id TEXT PRIMARY KEY,
              name TEXT NOT NULL,
              position INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS directory_members (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              group_id TEXT NOT NULL REFERENCES directory_groups (id),
              first_name TEXT NOT NULL DEFAULT '',
              last_name TEXT NOT NULL DEFAULT '',
              full_name TEXT NOT NULL DEFAULT ''
            );
            """
        )
        self._conn.commit()

    def search_records_by_dates(self, dates: Iterable[str]) -> list[PersistedRecord]:
        days = list(dict.fromkeys(dates))
        if not days:
            return []

        # Date = ? OR Date = ? ... mirrors the store's per-date predicate query.
        predicate = " OR ".join("date = ?" for _ in days)
        rows = self._conn.execute(
            f"SELECT {_RECORD_COLUMNS} FROM activity_records WHERE {predicate} ORDER BY id",
            days,
        ).fetchall()
        return [PersistedRecord.from_fields(row) for row in rows]

    def get_record(self, name: str) -> PersistedRecord | None:
        row = self._conn.execute(
            f"SELECT {_RECORD_COLUMNS} FROM activity_records WHERE name = ?",
            (name,),
        ).fetchone()
        if row is None:
            return None
        return PersistedRecord.from_fields(row)

    def upsert_records(self, records: Iterable[PersistedRecord]) -> UpsertAck:
        """Insert or update records by name in a single transaction."""
        inserted = updated = 0
        with self._conn:
            for record in records:
                exists = self._conn.execute(
                    "SELECT 1 FROM activity_records WHERE name = ?", (record.name,)
                ).fetchone()
                self._conn.execute(
                    """
                    INSERT INTO activity_records
                      (name, date, activity, participant, activity_duration, record_type, group_id)
                    VALUES (:Name, :Date, :Activity, :Participant, :Activity_Duration, :Record_Type, :Group_ID)
                    ON CONFLICT(name)
                    DO UPDATE SET
                      date=excluded.date,
                      activity=excluded.activity,
                      participant=excluded.participant,
                      activity_duration=excluded.activity_duration,
                      record_type=excluded.record_type,
                      group_id=excluded.group_id
                    """,
                    record.to_fields(),
                )
                if exists is None:
                    inserted += 1
                else:
                    updated += 1
        return UpsertAck(inserted=inserted, updated=updated)

    def add_group(self, group_id: str, name: str) -> None:
        position = self._conn.execute("SELECT COUNT(*) FROM directory_groups").fetchone()[0]
        self._conn.execute(
            """
            INSERT INTO directory_groups (id, name, position)
            VALUES (?, ?, ?)
            ON CONFLICT(id)
            DO UPDATE SET name=excluded.name
            """,
            (group_id, name, position),
        )
        self._conn.commit()

    def add_member(self, group_id: str, first_name: str = "", last_name: str = "", full_name: str = "") -> None:
        self._conn.execute(
            """
            INSERT INTO directory_members (group_id, first_name, last_name, full_name)
            VALUES (?, ?, ?, ?)
            """,
            (group_id, first_name, last_name, full_name),
        )
        self._conn.commit()

    def list_groups(self) -> list[Group]:
        group_rows = self._conn.execute(
            "SELECT id, name FROM directory_groups ORDER BY position, id"
        ).fetchall()
        member_rows = self._conn.execute(
            "SELECT group_id, first_name, last_name, full_name FROM directory_members ORDER BY id"
        ).fetchall()

        members: dict[str, list[Member]] = {}
        for row in member_rows:
            members.setdefault(row["group_id"], []).append(
                Member(first_name=row["first_name"], last_name=row["last_name"], full_name=row["full_name"])
            )

        return [
            Group(id=row["id"], name=row["name"], members=tuple(members.get(row["id"], ())))
            for row in group_rows
        ]
