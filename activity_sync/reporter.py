from __future__ import annotations

from typing import Protocol

from .errors import FetchError, SlotCodecError
from .models import PersistedRecord, RecordKind, ReportRow, UploadResult
from .slots import decode_slots

try:
    import discord
except ModuleNotFoundError:  # pragma: no cover - allows tests without discord.py installed
    discord = None


def format_minutes(total_minutes: int) -> str:
    """Render a duration as H:MM for report output."""
    safe_minutes = max(0, int(total_minutes))
    hours, minutes = divmod(safe_minutes, 60)
    return f"{hours}:{minutes:02}"


def build_upload_summary(result: UploadResult) -> str:
    lines = [
        f"Rows counted: {result.accepted_rows}, skipped: {result.skipped_rows}",
    ]
    if result.skip_reasons:
        reasons = ", ".join(f"{reason} x{count}" for reason, count in sorted(result.skip_reasons.items()))
        lines.append(f"Skipped: {reasons}")

    if not result.wrote_records:
        lines.append("Nothing to save.")
        return "\n".join(lines)

    users = sum(1 for record in result.records if record.record_type is RecordKind.USER)
    groups = len(result.records) - users
    lines.append(f"Dates: {', '.join(result.dates)}")
    lines.append(
        f"Saved {users} participant and {groups} group records "
        f"({result.ack.inserted} new, {result.ack.updated} merged)."
    )
    return "\n".join(lines)


class RecordReader(Protocol):
    async def search_by_dates(self, dates: list[str]) -> list[PersistedRecord]: ...


class ReportChannelLike(Protocol):
    async def send(self, content: str, **kwargs): ...


class Reporter:
    def __init__(self, gateway: RecordReader) -> None:
        self.gateway = gateway

    async def build_rows_for_day(self, day: str) -> list[ReportRow]:
        records = await self.gateway.search_by_dates([day])

        rows: list[ReportRow] = []
        for record in records:
            if record.activity_duration <= 0:
                continue
            try:
                slots = decode_slots(record.activity)
            except SlotCodecError as exc:
                raise FetchError(f"Stored record {record.name!r} has unreadable activity: {exc}") from exc
            occupied = sorted(key for key, count in slots.items() if count > 0)
            rows.append(
                ReportRow(
                    participant=record.participant,
                    record_type=record.record_type,
                    minutes=record.activity_duration,
                    first_slot=occupied[0] if occupied else None,
                )
            )

        # Groups first, then longest-active participants.
        rows.sort(key=lambda item: (item.record_type is not RecordKind.GROUP, -item.minutes, item.participant.lower()))
        return rows

    def build_report_content(self, day: str, rows: list[ReportRow]) -> str:
        header = f"**Activity - {day}**"

        if not rows:
            return f"{header}\nNo recorded activity for {day}."

        lines = []
        for row in rows:
            label = f"[group] {row.participant}" if row.record_type is RecordKind.GROUP else row.participant
            since = f" from {row.first_slot}" if row.first_slot else ""
            lines.append(f"- {label}: `{format_minutes(row.minutes)}`{since}")
        return f"{header}\n" + "\n".join(lines)

    async def post_report(self, channel: ReportChannelLike, day: str) -> bool:
        rows = await self.build_rows_for_day(day)
        content = self.build_report_content(day, rows)

        kwargs = {}
        if discord is not None:
            # Participant names must never ping anyone.
            kwargs["allowed_mentions"] = discord.AllowedMentions.none()

        await channel.send(content, **kwargs)
        return True
