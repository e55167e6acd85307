"""Readiness probing for a freshly started Dependency-Track instance."""

from __future__ import annotations

import asyncio
import logging

from .client import APIError, DependencyTrackClient
from .errors import ReadinessTimeout, TransientServiceError

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 3.0


async def _probe_once(client: DependencyTrackClient, connect_timeout: float) -> None:
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(client.host, client.port), timeout=connect_timeout
        )
    except (OSError, asyncio.TimeoutError) as exc:
        raise TransientServiceError(
            f"failed to establish tcp connection: {str(exc) or exc.__class__.__name__}",
            operation="tcp_connect",
            identifier=f"{client.host}:{client.port}",
        ) from exc
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        logger.debug("ignoring error while closing probe connection", exc_info=True)

    try:
        await client.about()
    except (APIError, ValueError) as exc:
        raise TransientServiceError(
            f"failed to get about: {exc}",
            operation="about",
            status_code=getattr(exc, "status_code", None),
        ) from exc


async def wait_until_ready(
    client: DependencyTrackClient,
    *,
    timeout: float,
    tick: float = DEFAULT_TICK_SECONDS,
) -> None:
    """Block until the service accepts TCP connections and answers ``/api/version``.

    Probes run once per ``tick``; refused connections and failing liveness
    queries are logged and retried. Raises :class:`ReadinessTimeout` when
    ``timeout`` elapses first.
    """

    if tick <= 0:
        raise ValueError("tick must be positive.")
    loop = asyncio.get_running_loop()
    start = loop.time()
    deadline = start + timeout

    async def _loop() -> None:
        while True:
            await asyncio.sleep(tick)
            try:
                await _probe_once(client, connect_timeout=tick)
            except TransientServiceError as exc:
                logger.warning("%s", exc)
                continue
            return

    try:
        await asyncio.wait_for(_loop(), timeout=max(0.0, deadline - loop.time()))
    except asyncio.TimeoutError as exc:
        raise ReadinessTimeout(
            f"service at {client.base_url} was not ready within {timeout:.0f}s",
            operation="wait_until_ready",
            identifier=client.base_url,
            elapsed=loop.time() - start,
        ) from exc
    logger.info("service ready after %.2fs", loop.time() - start)


__all__ = ["DEFAULT_TICK_SECONDS", "wait_until_ready"]
