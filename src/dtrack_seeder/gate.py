"""Weighted admission gate used to bound in-flight uploads."""

from __future__ import annotations

import asyncio


class AdmissionGate:
    """Counting semaphore with weighted acquire.

    Acquiring the full ``capacity`` blocks until every outstanding slot has been
    released, so :meth:`drain` doubles as an all-done barrier for work that was
    admitted through the gate.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive.")
        self._capacity = capacity
        self._available = capacity
        self._peak = 0
        self._cond = asyncio.Condition()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_flight(self) -> int:
        return self._capacity - self._available

    @property
    def peak(self) -> int:
        """Highest number of simultaneously held slots observed so far."""
        return self._peak

    async def acquire(self, weight: int = 1) -> None:
        if weight <= 0 or weight > self._capacity:
            raise ValueError(f"weight must be in [1, {self._capacity}], got {weight}.")
        async with self._cond:
            await self._cond.wait_for(lambda: self._available >= weight)
            self._available -= weight
            self._peak = max(self._peak, self.in_flight)

    async def release(self, weight: int = 1) -> None:
        async with self._cond:
            if self._available + weight > self._capacity:
                raise RuntimeError("AdmissionGate released more slots than were acquired.")
            self._available += weight
            self._cond.notify_all()

    async def drain(self) -> None:
        """Wait for every admitted unit to finish, leaving the gate empty again."""

        # Same as acquire(capacity) followed by release(capacity), minus the peak update.
        async with self._cond:
            await self._cond.wait_for(lambda: self._available == self._capacity)


__all__ = ["AdmissionGate"]
