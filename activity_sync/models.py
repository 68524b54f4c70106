from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .slots import duration_minutes


class RecordKind(str, Enum):
    USER = "User"
    GROUP = "Group"


class PollState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


def natural_key(day: str, participant: str) -> str:
    return f"{day} - {participant}"


@dataclass(frozen=True, slots=True)
class SkippedRow:
    row_index: int
    reason: str
    detail: str = ""


@dataclass(frozen=True, slots=True)
class ClassifiedRow:
    row_index: int
    executor: str
    day: str
    slot: str


@dataclass(slots=True)
class ActivityAggregate:
    day: str
    participant: str
    kind: RecordKind = RecordKind.USER
    group_id: str | None = None
    slots: dict[str, int] = field(default_factory=dict)

    @property
    def duration_minutes(self) -> int:
        return duration_minutes(self.slots)

    @property
    def natural_key(self) -> str:
        return natural_key(self.day, self.participant)

    def add(self, slot: str, count: int = 1) -> None:
        self.slots[slot] = self.slots.get(slot, 0) + count


@dataclass(frozen=True, slots=True)
class Member:
    first_name: str = ""
    last_name: str = ""
    full_name: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True, slots=True)
class Group:
    id: str
    name: str
    members: tuple[Member, ...] = ()


@dataclass(slots=True)
class ActivityBatch:
    """Everything aggregated from one uploaded file."""

    participants: dict[tuple[str, str], ActivityAggregate] = field(default_factory=dict)
    groups: dict[tuple[str, str], ActivityAggregate] = field(default_factory=dict)
    dates: list[str] = field(default_factory=list)
    accepted_rows: int = 0
    skipped: list[SkippedRow] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.participants

    def skip_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for row in self.skipped:
            counts[row.reason] = counts.get(row.reason, 0) + 1
        return counts


@dataclass(frozen=True, slots=True)
class PersistedRecord:
    name: str
    day: str
    activity: str
    participant: str
    activity_duration: int
    record_type: RecordKind
    group_id: str | None = None
    record_id: int | None = None

    def to_fields(self) -> dict[str, Any]:
        """Render the record in the store's field naming."""
        return {
            "id": self.record_id,
            "Name": self.name,
            "Date": self.day,
            "Activity": self.activity,
            "Participant": self.participant,
            "Activity_Duration": self.activity_duration,
            "Record_Type": self.record_type.value,
            "Group_ID": self.group_id,
        }

    @classmethod
    def from_fields(cls, fields: Any) -> PersistedRecord:
        return cls(
            name=fields["Name"],
            day=fields["Date"],
            activity=fields["Activity"] or "",
            participant=fields["Participant"],
            activity_duration=int(fields["Activity_Duration"] or 0),
            record_type=RecordKind(fields["Record_Type"]),
            group_id=fields["Group_ID"],
            record_id=fields["id"],
        )


@dataclass(frozen=True, slots=True)
class UpsertAck:
    inserted: int
    updated: int

    @property
    def total(self) -> int:
        return self.inserted + self.updated


@dataclass(frozen=True, slots=True)
class ReportRow:
    participant: str
    record_type: RecordKind
    minutes: int
    first_slot: str | None


@dataclass(slots=True)
class UploadResult:
    dates: list[str]
    accepted_rows: int
    skipped_rows: int
    skip_reasons: dict[str, int]
    records: list[PersistedRecord] = field(default_factory=list)
    ack: UpsertAck | None = None
    poll_state: PollState | None = None

    @property
    def wrote_records(self) -> bool:
        return self.ack is not None
