"""Sequential deletion of surplus projects."""

from __future__ import annotations

import logging
import time

from .client import APIError, DependencyTrackClient
from .errors import DeletionError

logger = logging.getLogger(__name__)


class DeletionSweeper:
    """Deletes the first ``n`` projects of the default listing, one at a time.

    There is no skip policy here: the first failure aborts the sweep.
    """

    def __init__(self, client: DependencyTrackClient) -> None:
        self._client = client

    async def delete_oldest(self, n: int) -> int:
        if n < 0:
            raise ValueError("n must be non-negative.")
        if n == 0:
            return 0
        start = time.perf_counter()
        logger.info("deleting first %d projects", n)
        try:
            page = await self._client.get_projects(1, n)
        except (APIError, ValueError) as exc:
            raise DeletionError(
                f"failed to fetch {n} projects: {exc}",
                operation="get_projects",
                elapsed=time.perf_counter() - start,
                status_code=getattr(exc, "status_code", None),
            ) from exc

        deleted = 0
        for project in page.items[:n]:
            logger.info("deleting project %s (%d/%d)", project.uuid, deleted + 1, n)
            try:
                await self._client.delete_project(project.uuid)
            except APIError as exc:
                raise DeletionError(
                    f"failed to delete project {project.uuid}: {exc}",
                    deleted=deleted,
                    operation="delete_project",
                    identifier=project.uuid,
                    elapsed=time.perf_counter() - start,
                    status_code=exc.status_code,
                ) from exc
            deleted += 1

        if deleted < n:
            raise DeletionError(
                f"only {deleted} of {n} projects were available for deletion",
                deleted=deleted,
                operation="get_projects",
                identifier=f"#{deleted + 1}",
                elapsed=time.perf_counter() - start,
            )
        logger.info("deleted %d projects in %.2fs", deleted, time.perf_counter() - start)
        return deleted


__all__ = ["DeletionSweeper"]
