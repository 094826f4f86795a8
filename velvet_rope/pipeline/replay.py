"""Timed replay of simulation rounds to a live consumer.

Rounds are emitted in round_number order with a fixed delay between them.
A consumer stops the replay by setting `cancel` or by closing the
generator; either way the stop happens between rounds, never mid-round.
Rounds are finished artifacts, so stopping early loses nothing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from velvet_rope.models import SimulationResult, SimulationRound

logger = logging.getLogger(__name__)

DEFAULT_ROUND_DELAY = 1.5


async def replay_rounds(
    result: SimulationResult,
    delay: float = DEFAULT_ROUND_DELAY,
    cancel: asyncio.Event | None = None,
) -> AsyncIterator[SimulationRound]:
    """Yield each round after waiting `delay` seconds."""
    cancel = cancel or asyncio.Event()
    for rnd in sorted(result.rounds, key=lambda r: r.round_number):
        if delay > 0:
            try:
                await asyncio.wait_for(cancel.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
        if cancel.is_set():
            logger.debug("replay cancelled before round %d", rnd.round_number)
            return
        yield rnd
