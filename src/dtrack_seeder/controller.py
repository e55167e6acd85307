"""Convergence of the remote project inventory to a target count."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Literal, Sequence

from .client import APIError, DependencyTrackClient
from .dispatcher import BoundedUploadDispatcher, DispatchSettings, SubmissionOutcome
from .errors import ConfigurationError, SeederError
from .manifests import Manifest
from .sweeper import DeletionSweeper

logger = logging.getLogger(__name__)

Action = Literal["create", "delete", "converged"]


def compute_delta(desired: int, current: int) -> int:
    """Signed number of projects to create (positive) or delete (negative)."""

    return desired - current


@dataclass(slots=True)
class ReconciliationResult:
    action: Action
    current_count: int
    desired_count: int
    attempted: int = 0
    failed: int = 0
    deleted: int = 0
    elapsed: float = 0.0
    elapsed_with_completion: float | None = None
    outcomes: list[SubmissionOutcome] = field(default_factory=list)

    @property
    def delta(self) -> int:
        return compute_delta(self.desired_count, self.current_count)


class ConvergenceController:
    """Routes the inventory delta to the upload dispatcher or the deletion sweeper."""

    def __init__(
        self,
        client: DependencyTrackClient,
        manifests: Sequence[Manifest],
        settings: DispatchSettings,
        *,
        dispatcher: BoundedUploadDispatcher | None = None,
        sweeper: DeletionSweeper | None = None,
    ) -> None:
        self._client = client
        self._manifests = list(manifests)
        self._settings = settings
        self._dispatcher = dispatcher or BoundedUploadDispatcher(client, settings)
        self._sweeper = sweeper or DeletionSweeper(client)

    async def current_count(self) -> int:
        start = time.perf_counter()
        try:
            page = await self._client.get_projects(1, 1)
        except (APIError, ValueError) as exc:
            raise SeederError(
                f"failed to get projects: {exc}",
                operation="get_projects",
                elapsed=time.perf_counter() - start,
                status_code=getattr(exc, "status_code", None),
            ) from exc
        return page.total_count

    async def reconcile(self, desired_count: int) -> ReconciliationResult:
        if desired_count < 0:
            raise ConfigurationError("desired project count must be non-negative.")
        logger.info("fetching projects")
        current = await self.current_count()
        delta = compute_delta(desired_count, current)
        logger.info("found %d projects, want %d", current, desired_count)

        start = time.perf_counter()
        if delta > 0:
            if not self._manifests:
                raise ConfigurationError("no manifests loaded", operation="reconcile")
            logger.info("creating %d projects", delta)
            report = await self._dispatcher.dispatch(delta, self._manifests)
            result = ReconciliationResult(
                action="create",
                current_count=current,
                desired_count=desired_count,
                attempted=report.counters.attempted,
                failed=report.counters.failed,
                elapsed=report.elapsed,
                elapsed_with_completion=report.elapsed_with_completion,
                outcomes=report.outcomes,
            )
            logger.info(
                "created %d/%d projects (%d failed) in %.2fs",
                report.counters.accepted,
                delta,
                report.counters.failed,
                report.elapsed,
            )
            return result
        if delta < 0:
            deleted = await self._sweeper.delete_oldest(-delta)
            return ReconciliationResult(
                action="delete",
                current_count=current,
                desired_count=desired_count,
                attempted=-delta,
                deleted=deleted,
                elapsed=time.perf_counter() - start,
            )
        logger.info("nothing to do")
        return ReconciliationResult(
            action="converged", current_count=current, desired_count=desired_count
        )


__all__ = ["Action", "ConvergenceController", "ReconciliationResult", "compute_delta"]
