from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from .errors import GatewayError, UploadCancelled, VerificationTimeout
from .models import PersistedRecord, PollState


class CancellationToken:
    """Cooperative cancellation flag checked between network calls."""

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise UploadCancelled("Upload cancelled")


class VerificationPoller:
    """Polls the store until a written date is visible or attempts run out.

    ``read`` returns the records stored for a date. ``sleep`` is injectable so
    tests can run without real delays.
    """

    def __init__(
        self,
        read: Callable[[str], Awaitable[Sequence[PersistedRecord]]],
        *,
        max_attempts: int,
        interval_seconds: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self.read = read
        self.max_attempts = max_attempts
        self.interval_seconds = interval_seconds
        self.sleep = sleep
        self.logger = logger or logging.getLogger(__name__)
        self.state = PollState.IDLE
        self.remaining = max_attempts

    async def run(
        self,
        day: str,
        *,
        cancel_token: CancellationToken | None = None,
        on_countdown: Callable[[int], Awaitable[None] | None] | None = None,
    ) -> PollState:
        self.state = PollState.POLLING
        self.remaining = self.max_attempts

        for attempt in range(1, self.max_attempts + 1):
            self._check_cancelled(cancel_token)
            await self.sleep(self.interval_seconds)
            self._check_cancelled(cancel_token)

            try:
                found = await self.read(day)
            except GatewayError as exc:
                # Read failures count as "not visible yet" and use up the attempt.
                self.logger.warning("Verification read %d/%d failed: %s", attempt, self.max_attempts, exc)
                found = []

            self.remaining -= 1
            if on_countdown is not None:
                pending = on_countdown(self.remaining)
                if pending is not None:
                    await pending

            if found:
                self.state = PollState.CONFIRMED
                self.logger.info("Verified %s after %d attempt(s)", day, attempt)
                return self.state

        self.state = PollState.TIMED_OUT
        raise VerificationTimeout(
            f"Records for {day} not visible after {self.max_attempts} attempts"
        )

    def _check_cancelled(self, cancel_token: CancellationToken | None) -> None:
        if cancel_token is not None and cancel_token.cancelled:
            self.state = PollState.CANCELLED
            cancel_token.raise_if_cancelled()
