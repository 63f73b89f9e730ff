"""Bounded polling for result objects written by the inference worker."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from loguru import logger

from core.exceptions import StorageError
from core.settings import PollingSettings
from core.storage import ObjectStorage, StorageLocation

SleepFn = Callable[[float], Awaitable[None]]


class PollState(str, Enum):
    POLLING = "polling"
    FOUND = "found"
    EXHAUSTED = "exhausted"
    STORAGE_FAILURE = "storage_failure"


@dataclass(frozen=True)
class PollPolicy:
    max_attempts: int = 15
    interval_seconds: float = 1.0
    deadline_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")

    @classmethod
    def from_settings(cls, settings: PollingSettings) -> "PollPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            interval_seconds=settings.interval_ms / 1000.0,
            deadline_seconds=settings.deadline_seconds,
        )


@dataclass
class PollResult:
    state: PollState
    checks: int = 0
    waited_seconds: float = 0.0
    payload: bytes | None = None
    error: StorageError | None = None


class ResultPoller:
    """Wait for an object to appear, then fetch it.

    From ``Polling(n)`` each step checks existence once. A hit fetches the
    object (``FOUND``); a miss with attempts left suspends for the interval;
    a miss on the last attempt ends in ``EXHAUSTED``. Any storage error other
    than "not found" ends in ``STORAGE_FAILURE``. Storage calls run in a
    worker thread so other requests keep progressing while one waits.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        policy: PollPolicy,
        *,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.storage = storage
        self.policy = policy
        self._sleep = sleep
        self._clock = clock

    async def run(
        self,
        location: StorageLocation,
        cancel_event: asyncio.Event | None = None,
    ) -> PollResult:
        result = PollResult(state=PollState.POLLING)
        started = self._clock()
        remaining = self.policy.max_attempts - 1

        while result.state is PollState.POLLING:
            result.checks += 1
            try:
                found = await asyncio.to_thread(self.storage.exists, location)
            except StorageError as exc:
                result.state, result.error = PollState.STORAGE_FAILURE, exc
                break

            if found:
                try:
                    result.payload = await asyncio.to_thread(self.storage.get_bytes, location)
                except StorageError as exc:
                    result.state, result.error = PollState.STORAGE_FAILURE, exc
                    break
                result.state = PollState.FOUND
                break

            if remaining == 0 or self._deadline_passed(started):
                result.state = PollState.EXHAUSTED
                break

            if cancel_event is not None and cancel_event.is_set():
                logger.info("Polling for {location} cancelled after {checks} checks", location=location, checks=result.checks)
                raise asyncio.CancelledError()

            await self._sleep(self.policy.interval_seconds)
            result.waited_seconds += self.policy.interval_seconds
            remaining -= 1

        logger.debug(
            "Polling for {location} finished state={state} checks={checks}",
            location=location,
            state=result.state.value,
            checks=result.checks,
        )
        return result

    def _deadline_passed(self, started: float) -> bool:
        deadline = self.policy.deadline_seconds
        if deadline is None:
            return False
        return self._clock() - started + self.policy.interval_seconds > deadline


__all__ = ["PollPolicy", "PollResult", "PollState", "ResultPoller"]
