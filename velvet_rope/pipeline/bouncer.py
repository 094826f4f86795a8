"""Biometric sampling while a pitch is delivered.

One sampling window per attendee, strictly sequential:

  1. open()     - a source is obtained from the factory; if the camera is
                  unavailable (DevicePermissionError) a synthetic source is
                  used instead, so vetting never blocks.
  2. sample()   - every 250 ms the source is read; readable vectors become
                  ExpressionSnapshots. Unreadable frames (None) are skipped.
  3. The window closes the instant `delivered` is set. Cancelling the task
     discards the window's snapshots; nothing is recorded.
  4. summarize() turns the window into one BiometricResult.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Callable, Mapping
from typing import Protocol

from velvet_rope.models import BiometricResult, ExpressionSnapshot
from velvet_rope.signals import SAMPLE_INTERVAL_MS, make_snapshot, summarize, synthetic_expressions

logger = logging.getLogger(__name__)


class DevicePermissionError(RuntimeError):
    """The capture device could not be opened (denied or missing)."""


class ExpressionSource(Protocol):
    async def read(self) -> Mapping[str, float] | None: ...


class SyntheticExpressionSource:
    """Generates plausible expression vectors without a camera."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    async def read(self) -> Mapping[str, float] | None:
        return synthetic_expressions(self._rng)


SourceFactory = Callable[[], ExpressionSource]


class Bouncer:
    """Runs sampling windows, one at a time.

    Args:
        source_factory: Opens the capture source. May raise DevicePermissionError.
        interval_ms:    Sampling cadence. Defaults to 250.
        seed:           Seed for the synthetic fallback source.
    """

    def __init__(
        self,
        source_factory: SourceFactory | None = None,
        interval_ms: int = SAMPLE_INTERVAL_MS,
        seed: int | None = None,
    ) -> None:
        self._factory = source_factory
        self._interval = interval_ms / 1000
        self._seed = seed
        self._active: str | None = None

    @property
    def interval_ms(self) -> int:
        return round(self._interval * 1000)

    @interval_ms.setter
    def interval_ms(self, value: int) -> None:
        """Takes effect from the next window; a live window keeps its cadence."""
        if value <= 0:
            raise ValueError("Sampling interval must be positive")
        self._interval = value / 1000

    @property
    def active(self) -> str | None:
        """Attendee id of the live window, if any."""
        return self._active

    def open(self) -> ExpressionSource:
        if self._factory is None:
            return SyntheticExpressionSource(self._seed)
        try:
            return self._factory()
        except DevicePermissionError as e:
            logger.warning("Capture device unavailable (%s); using synthetic expressions", e)
            return SyntheticExpressionSource(self._seed)

    async def vet(self, attendee_id: str, delivered: asyncio.Event) -> BiometricResult:
        """Sample until `delivered` is set and return the attendee's result."""
        if self._active is not None:
            raise RuntimeError(
                f"Sampling window for {self._active!r} is still open; "
                f"cannot start {attendee_id!r}"
            )
        self._active = attendee_id
        try:
            source = self.open()
            started = time.monotonic()
            snapshots = await self._sample(source, delivered)
            duration_ms = round((time.monotonic() - started) * 1000)
        finally:
            self._active = None
        logger.debug("vetted %s with %d snapshots", attendee_id, len(snapshots))
        return summarize(attendee_id, snapshots, duration_ms)

    async def _sample(
        self, source: ExpressionSource, delivered: asyncio.Event
    ) -> list[ExpressionSnapshot]:
        snapshots: list[ExpressionSnapshot] = []
        interval = self._interval
        while not delivered.is_set():
            expressions = await source.read()
            if delivered.is_set():
                break
            if expressions is not None:
                snapshots.append(make_snapshot(expressions, time.time()))
            try:
                await asyncio.wait_for(delivered.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        return snapshots


def timed_delivery(seconds: float) -> asyncio.Event:
    """Event that is set after `seconds`, standing in for a spoken pitch.

    Must be called from inside a running event loop.
    """
    done = asyncio.Event()
    loop = asyncio.get_running_loop()
    loop.call_later(max(0.0, seconds), done.set)
    return done
