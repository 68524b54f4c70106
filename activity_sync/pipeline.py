from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .aggregator import ActivityAggregator
from .classifier import ClassifierRules
from .csv_input import resolve_columns, tokenize_rows
from .directory import Directory
from .errors import ParseError, UploadCancelled, VerificationTimeout
from .gateway import NATURAL_KEY_FIELDS
from .models import PollState, UploadResult
from .poller import CancellationToken, VerificationPoller
from .reconcile import reconcile


class ActivityUploader:
    """Runs one uploaded export through aggregation, merge, upsert and verify."""

    def __init__(
        self,
        gateway,
        directory: Directory,
        *,
        rules: ClassifierRules | None = None,
        max_attempts: int = 5,
        interval_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.gateway = gateway
        self.directory = directory
        self.rules = rules or ClassifierRules()
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)

    async def upload(
        self,
        text: str,
        *,
        cancel_token: CancellationToken | None = None,
        on_countdown: Callable[[int], Awaitable[None] | None] | None = None,
    ) -> UploadResult:
        token = cancel_token or CancellationToken()

        rows = tokenize_rows(text)
        if len(rows) < 2:
            raise ParseError("File has too few rows: expected a header and at least one data row")

        columns = resolve_columns(rows[0])
        batch = ActivityAggregator(self.directory, self.rules, self.logger).aggregate(rows[1:], columns)

        result = UploadResult(
            dates=list(batch.dates),
            accepted_rows=batch.accepted_rows,
            skipped_rows=len(batch.skipped),
            skip_reasons=batch.skip_counts(),
        )
        if batch.is_empty:
            self.logger.info("No countable rows in upload, nothing to save")
            return result

        token.raise_if_cancelled()
        records = await reconcile(batch, self.gateway)

        token.raise_if_cancelled()
        result.ack = await self.gateway.upsert(records, list(NATURAL_KEY_FIELDS))
        result.records = records

        async def read_day(day: str):
            return await self.gateway.search_by_dates([day])

        poller = VerificationPoller(
            read_day,
            max_attempts=self.max_attempts,
            interval_seconds=self.interval_seconds,
            sleep=self.sleep,
            logger=self.logger,
        )
        try:
            result.poll_state = await poller.run(batch.dates[0], cancel_token=token, on_countdown=on_countdown)
        except VerificationTimeout as exc:
            result.poll_state = PollState.TIMED_OUT
            exc.result = result
            raise
        except UploadCancelled as exc:
            result.poll_state = PollState.CANCELLED
            exc.result = result
            raise
        return result
