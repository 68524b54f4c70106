import asyncio

import pytest

from activity_sync.db import Database
from activity_sync.directory import Directory
from activity_sync.errors import FetchError, ParseError, UploadCancelled, UpsertError, VerificationTimeout
from activity_sync.gateway import SqliteGateway
from activity_sync.models import Group, Member, PersistedRecord, PollState, RecordKind, UpsertAck
from activity_sync.pipeline import ActivityUploader
from activity_sync.poller import CancellationToken
from activity_sync.slots import decode_slots

HEADER = "Id,Module,Action,Record,Field,Old Value,Performed By,Modified Time"

EXPORT = "\n".join(
    [
        HEADER,
        "1,Leads,Edit,L-1,Stage,New,System Workflow,05.03.2024 09:01:10",
        '2,Leads,Edit,L-1,"Notes, long",,Anna Petrova,05.03.2024 09:01:10',
        "3,Leads,Edit,L-2,Stage,New,Anna Petrova,05.03.2024 09:05:40",
    ]
)


async def no_sleep(seconds) -> None:
    return None


def make_gateway() -> SqliteGateway:
    db = Database(":memory:")
    db.initialize()
    return SqliteGateway(db)


def make_uploader(gateway, directory=None, **kwargs) -> ActivityUploader:
    return ActivityUploader(
        gateway,
        directory or Directory.empty(),
        max_attempts=kwargs.pop("max_attempts", 2),
        interval_seconds=0.01,
        sleep=no_sleep,
        **kwargs,
    )


def test_end_to_end_single_window() -> None:
    gateway = make_gateway()

    result = asyncio.run(make_uploader(gateway).upload(EXPORT))

    assert result.accepted_rows == 2
    assert result.skipped_rows == 1
    assert result.skip_reasons == {"system-executor": 1}
    assert result.poll_state is PollState.CONFIRMED
    assert result.ack == UpsertAck(inserted=1, updated=0)

    stored = asyncio.run(gateway.search_by_dates(["2024-03-05"]))
    assert len(stored) == 1
    assert stored[0].name == "2024-03-05 - Anna Petrova"
    assert decode_slots(stored[0].activity) == {"09:00": 2}
    assert stored[0].activity_duration == 10


def test_reuploading_same_file_sums_counts() -> None:
    gateway = make_gateway()
    uploader = make_uploader(gateway)

    asyncio.run(uploader.upload(EXPORT))
    second = asyncio.run(uploader.upload(EXPORT))

    assert second.ack == UpsertAck(inserted=0, updated=1)
    stored = asyncio.run(gateway.search_by_dates(["2024-03-05"]))
    assert len(stored) == 1
    assert decode_slots(stored[0].activity) == {"09:00": 4}
    assert stored[0].activity_duration == 10


def test_group_records_are_written_with_participants() -> None:
    gateway = make_gateway()
    directory = Directory([Group(id="g1", name="Sales", members=(Member("Anna", "Petrova"),))])

    result = asyncio.run(make_uploader(gateway, directory).upload(EXPORT))

    kinds = {record.name: record.record_type for record in result.records}
    assert kinds == {"2024-03-05 - Anna Petrova": RecordKind.USER, "2024-03-05 - Sales": RecordKind.GROUP}
    stored = {record.name: record for record in asyncio.run(gateway.search_by_dates(["2024-03-05"]))}
    assert stored["2024-03-05 - Sales"].group_id == "g1"
    assert decode_slots(stored["2024-03-05 - Sales"].activity) == {"09:00": 2}


def test_header_only_file_is_a_parse_error() -> None:
    with pytest.raises(ParseError):
        asyncio.run(make_uploader(make_gateway()).upload(HEADER + "\n"))


def test_bad_quoting_is_a_parse_error() -> None:
    with pytest.raises(ParseError):
        asyncio.run(make_uploader(make_gateway()).upload(HEADER + '\n1,"Leads,Edit\n'))


class RecordingGateway:
    def __init__(self, fail_fetch=False, fail_upsert=False, visible=True) -> None:
        self.fail_fetch = fail_fetch
        self.fail_upsert = fail_upsert
        self.visible = visible
        self.calls = []

    async def search_by_dates(self, dates):
        self.calls.append(("search", list(dates)))
        if self.fail_fetch:
            raise FetchError("store unreachable")
        if self.visible and any(call[0] == "upsert" for call in self.calls):
            return ["record"]
        return []

    async def upsert(self, records, duplicate_check_fields):
        self.calls.append(("upsert", list(duplicate_check_fields)))
        if self.fail_upsert:
            raise UpsertError("write rejected")
        return UpsertAck(inserted=len(records), updated=0)


def test_nothing_countable_skips_the_store() -> None:
    gateway = RecordingGateway()
    text = HEADER + "\n1,Deluge,Edit,L-1,Stage,New,Anna Petrova,05.03.2024 09:01:10\n"

    result = asyncio.run(make_uploader(gateway).upload(text))

    assert result.accepted_rows == 0
    assert result.skip_reasons == {"denylisted-module": 1}
    assert not result.wrote_records
    assert gateway.calls == []


def test_fetch_failure_means_no_upsert() -> None:
    gateway = RecordingGateway(fail_fetch=True)

    with pytest.raises(FetchError):
        asyncio.run(make_uploader(gateway).upload(EXPORT))

    assert [call[0] for call in gateway.calls] == ["search"]


def test_upsert_failure_means_no_polling() -> None:
    gateway = RecordingGateway(fail_upsert=True)

    with pytest.raises(UpsertError):
        asyncio.run(make_uploader(gateway).upload(EXPORT))

    assert [call[0] for call in gateway.calls] == ["search", "upsert"]


def test_upsert_precedes_polling_and_uses_natural_key() -> None:
    gateway = RecordingGateway()

    asyncio.run(make_uploader(gateway).upload(EXPORT))

    assert gateway.calls[0] == ("search", ["2024-03-05"])
    assert gateway.calls[1] == ("upsert", ["Name"])
    assert gateway.calls[2] == ("search", ["2024-03-05"])


def test_unconfirmed_write_carries_result() -> None:
    gateway = RecordingGateway(visible=False)

    with pytest.raises(VerificationTimeout) as excinfo:
        asyncio.run(make_uploader(gateway, max_attempts=2).upload(EXPORT))

    result = excinfo.value.result
    assert result.poll_state is PollState.TIMED_OUT
    assert result.ack == UpsertAck(inserted=1, updated=0)
    # One merge fetch plus two verification reads.
    assert [call[0] for call in gateway.calls] == ["search", "upsert", "search", "search"]


def test_cancelled_upload_makes_no_network_calls() -> None:
    gateway = RecordingGateway()
    token = CancellationToken()
    token.cancel()

    with pytest.raises(UploadCancelled):
        asyncio.run(make_uploader(gateway).upload(EXPORT, cancel_token=token))

    assert gateway.calls == []


def test_upload_never_overwrites_stored_group_with_same_name() -> None:
    gateway = make_gateway()
    asyncio.run(
        gateway.upsert(
            [
                PersistedRecord(
                    name="2024-03-05 - Sales",
                    day="2024-03-05",
                    activity='{"08:00": 7}',
                    participant="Sales",
                    activity_duration=10,
                    record_type=RecordKind.GROUP,
                    group_id="g1",
                )
            ],
            ["Name"],
        )
    )
    text = HEADER + "\n1,Leads,Edit,L-1,Stage,New,Sales,05.03.2024 09:01:10\n"

    result = asyncio.run(make_uploader(gateway).upload(text))

    assert result.records == []
    stored = asyncio.run(gateway.search_by_dates(["2024-03-05"]))
    assert len(stored) == 1
    assert stored[0].record_type is RecordKind.GROUP
    assert decode_slots(stored[0].activity) == {"08:00": 7}


def test_cancel_during_verification_keeps_saved_result() -> None:
    gateway = RecordingGateway(visible=False)
    token = CancellationToken()

    def on_countdown(remaining):
        token.cancel()

    with pytest.raises(UploadCancelled) as excinfo:
        asyncio.run(make_uploader(gateway, max_attempts=3).upload(EXPORT, cancel_token=token, on_countdown=on_countdown))

    result = excinfo.value.result
    assert result.poll_state is PollState.CANCELLED
    assert result.wrote_records
    assert result.ack == UpsertAck(inserted=1, updated=0)
    assert [call[0] for call in gateway.calls] == ["search", "upsert", "search"]


def test_cancel_before_saving_has_no_result() -> None:
    token = CancellationToken()
    token.cancel()

    with pytest.raises(UploadCancelled) as excinfo:
        asyncio.run(make_uploader(RecordingGateway()).upload(EXPORT, cancel_token=token))

    assert excinfo.value.result is None
