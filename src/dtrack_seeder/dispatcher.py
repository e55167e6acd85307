"""Bounded-concurrency BOM upload dispatcher."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from .client import APIError, DependencyTrackClient
from .errors import ConfigurationError, SubmissionError
from .gate import AdmissionGate
from .identity import ProjectIdentity, derive_identity
from .manifests import Manifest, decode_hints, select_manifest
from .poller import CompletionPoller, CompletionResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchSettings:
    """Knobs for one dispatch run."""

    concurrency: int = 1
    skip_failed: bool = False
    inter_unit_delay: float = 0.0
    wait: bool = False
    poll_interval: float = 1.0
    wait_timeout: float = 300.0

    def __post_init__(self) -> None:
        if self.concurrency <= 0:
            raise ConfigurationError("concurrency must be a positive integer.")
        if self.inter_unit_delay < 0:
            raise ConfigurationError("inter_unit_delay must be non-negative.")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive.")
        if self.wait_timeout <= 0:
            raise ConfigurationError("wait_timeout must be positive.")


@dataclass(slots=True)
class DispatchCounters:
    attempted: int = 0
    accepted: int = 0
    failed: int = 0

    @property
    def failure_ratio(self) -> float:
        return self.failed / self.attempted if self.attempted else 0.0


@dataclass(slots=True)
class SubmissionOutcome:
    """Result of one unit of work: accepted with a token, or failed."""

    unit: int
    manifest: str
    identity: ProjectIdentity | None = None
    token: str | None = None
    error: SubmissionError | None = None
    completion: CompletionResult | None = None

    @property
    def accepted(self) -> bool:
        return self.token is not None


@dataclass(slots=True)
class DispatchReport:
    units: int
    outcomes: list[SubmissionOutcome] = field(default_factory=list)
    counters: DispatchCounters = field(default_factory=DispatchCounters)
    peak_in_flight: int = 0
    elapsed: float = 0.0
    elapsed_with_completion: float | None = None

    @property
    def completions(self) -> list[CompletionResult]:
        return [outcome.completion for outcome in self.outcomes if outcome.completion is not None]


class BoundedUploadDispatcher:
    """Submits BOM uploads with at most ``concurrency`` requests in flight.

    Each unit acquires one gate slot before it is spawned and returns it when it
    finishes, whatever the outcome. Once every unit has been issued the
    dispatcher drains the gate, which waits for all admitted units to return
    their slots. Completion tracking runs in a separate task group that never
    holds a slot, so slow processing cannot starve new submissions.
    """

    def __init__(
        self,
        client: DependencyTrackClient,
        settings: DispatchSettings,
        *,
        poller: CompletionPoller | None = None,
        token_factory: Callable[[], str] | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._poller = poller or CompletionPoller(client, poll_interval=settings.poll_interval)
        self._token_factory = token_factory

    async def dispatch(self, units: int, manifests: Sequence[Manifest]) -> DispatchReport:
        if units < 0:
            raise ValueError("units must be non-negative.")
        report = DispatchReport(units=units)
        if units == 0:
            return report
        if not manifests:
            raise ConfigurationError("no manifests loaded", operation="dispatch")

        settings = self._settings
        loop = asyncio.get_running_loop()
        start = loop.time()
        deadline = start + settings.wait_timeout
        gate = AdmissionGate(settings.concurrency)
        slots: list[SubmissionOutcome | None] = [None] * units
        unit_tasks: list[asyncio.Task[None]] = []
        tracked: list[asyncio.Task[None]] = []
        fatal: list[BaseException] = []

        try:
            for unit in range(units):
                await gate.acquire()
                if fatal:
                    await gate.release()
                    break
                manifest = select_manifest(manifests, unit)
                unit_tasks.append(
                    asyncio.create_task(
                        self._run_unit(
                            unit,
                            units,
                            manifest,
                            gate,
                            report.counters,
                            slots,
                            tracked,
                            fatal,
                            deadline,
                        ),
                        name=f"upload-{unit}",
                    )
                )
                if settings.inter_unit_delay > 0 and unit + 1 < units:
                    await asyncio.sleep(settings.inter_unit_delay)
            await gate.drain()

            report.outcomes = [outcome for outcome in slots if outcome is not None]
            report.peak_in_flight = gate.peak
            report.elapsed = loop.time() - start
            if fatal:
                raise fatal[0]

            if settings.wait:
                if tracked:
                    await asyncio.gather(*tracked)
                report.elapsed_with_completion = loop.time() - start
                logger.info("all done after %.2fs", report.elapsed_with_completion)
            return report
        finally:
            pending = [task for task in (*unit_tasks, *tracked) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _run_unit(
        self,
        unit: int,
        units: int,
        manifest: Manifest,
        gate: AdmissionGate,
        counters: DispatchCounters,
        slots: list[SubmissionOutcome | None],
        tracked: list[asyncio.Task[None]],
        fatal: list[BaseException],
        deadline: float,
    ) -> None:
        outcome = SubmissionOutcome(unit=unit, manifest=manifest.name)
        slots[unit] = outcome
        try:
            outcome.identity = derive_identity(
                decode_hints(manifest), token_factory=self._token_factory
            )
            logger.info(
                "creating project %d/%d (%s %s from %s)",
                unit + 1,
                units,
                outcome.identity.name,
                outcome.identity.version,
                manifest.name,
            )
            counters.attempted += 1
            outcome.token = await self._submit(outcome.identity, manifest)
            counters.accepted += 1
            if self._settings.wait:
                tracked.append(
                    asyncio.create_task(self._track(outcome, deadline), name=f"track-{unit}")
                )
        except SubmissionError as exc:
            outcome.error = exc
            counters.failed += 1
            if self._settings.skip_failed:
                logger.warning(
                    "failed to upload project %d/%d, skipping (%d/%d failed, %.1f%%): %s",
                    unit + 1,
                    units,
                    counters.failed,
                    counters.attempted,
                    counters.failure_ratio * 100.0,
                    exc.describe(),
                )
            else:
                logger.error("failed to upload project %d/%d: %s", unit + 1, units, exc.describe())
                fatal.append(exc)
        except Exception as exc:
            logger.error("unit %d/%d aborted the run: %s", unit + 1, units, exc)
            fatal.append(exc)
        finally:
            await gate.release()

    async def _submit(self, identity: ProjectIdentity, manifest: Manifest) -> str:
        loop = asyncio.get_running_loop()
        start = loop.time()
        try:
            return await self._client.upload_bom(
                identity.name, identity.version, manifest.content, auto_create=True
            )
        except (APIError, KeyError, ValueError) as exc:
            raise SubmissionError(
                f"failed to upload project {identity.name}: {exc}",
                operation="upload_bom",
                identifier=f"{identity.name}@{identity.version}",
                elapsed=loop.time() - start,
                status_code=getattr(exc, "status_code", None),
            ) from exc

    async def _track(self, outcome: SubmissionOutcome, deadline: float) -> None:
        assert outcome.token is not None
        outcome.completion = await self._poller.await_completion(outcome.token, deadline=deadline)


__all__ = [
    "BoundedUploadDispatcher",
    "DispatchCounters",
    "DispatchReport",
    "DispatchSettings",
    "SubmissionOutcome",
]
