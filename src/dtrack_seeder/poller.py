"""Completion tracking for uploaded BOMs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from .client import APIError, DependencyTrackClient
from .errors import PollError

logger = logging.getLogger(__name__)


class PollState(str, Enum):
    POLLING = "polling"
    DONE = "done"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass(slots=True)
class CompletionResult:
    """Terminal state of one poll sequence."""

    token: str
    state: PollState = PollState.POLLING
    queries: int = 0
    elapsed: float = 0.0
    error: PollError | None = None

    @property
    def done(self) -> bool:
        return self.state is PollState.DONE


class CompletionPoller:
    """Polls the processing status of a token on a strictly periodic tick.

    The first query happens one ``poll_interval`` after the wait starts. Ticks
    that are missed because a query ran long are dropped rather than fired in
    a burst. A failing status query ends the wait in ``FAILED``; it is never
    read as "still processing".
    """

    def __init__(self, client: DependencyTrackClient, *, poll_interval: float) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive.")
        self._client = client
        self._interval = float(poll_interval)

    async def await_completion(self, token: str, *, deadline: float) -> CompletionResult:
        """Poll ``token`` until done, failed or the loop-time ``deadline`` passes."""

        loop = asyncio.get_running_loop()
        start = loop.time()
        result = CompletionResult(token=token)
        try:
            await asyncio.wait_for(self._tick_loop(result), timeout=deadline - start)
        except asyncio.TimeoutError:
            result.state = PollState.TIMED_OUT
        except PollError as exc:
            result.state = PollState.FAILED
            result.error = exc
        else:
            result.state = PollState.DONE
        result.elapsed = loop.time() - start

        if result.state is PollState.DONE:
            logger.info("token %s processed after %.2fs", token, result.elapsed)
        elif result.state is PollState.FAILED:
            logger.warning(
                "waiting for token %s failed after %.2fs: %s", token, result.elapsed, result.error
            )
        else:
            logger.warning(
                "waiting for token %s timed out after %.2fs (%d queries)",
                token,
                result.elapsed,
                result.queries,
            )
        return result

    async def _tick_loop(self, result: CompletionResult) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self._interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            result.queries += 1
            try:
                processing = await self._client.is_being_processed(result.token)
            except (APIError, ValueError) as exc:
                raise PollError(
                    f"status query for token {result.token} failed: {exc}",
                    operation="is_being_processed",
                    identifier=result.token,
                    status_code=getattr(exc, "status_code", None),
                ) from exc
            if not processing:
                return
            next_tick += self._interval
            now = loop.time()
            if next_tick < now:
                skipped = int((now - next_tick) // self._interval) + 1
                next_tick += skipped * self._interval


__all__ = ["CompletionPoller", "CompletionResult", "PollState"]
