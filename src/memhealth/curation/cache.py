"""Cooldown cache for session analysis.

A small state machine:

    Idle(last_analyzed_at) ──get_or_analyze──▶ InFlight(previous)
    InFlight ──success──▶ Cached(result, analyzed_at)
    InFlight ──failure──▶ previous            (timestamp untouched)
    Cached ──within cooldown──▶ Cached        (no external call)

Only a successful call moves the timestamp, so a failed call never throttles
the next attempt.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Union

from memhealth.models import ProjectContext, SessionAnalysis

logger = logging.getLogger(__name__)

ANALYSIS_COOLDOWN_SECONDS = 5 * 60


@dataclass(frozen=True)
class Idle:
    last_analyzed_at: float | None = None


@dataclass(frozen=True)
class Cached:
    result: SessionAnalysis
    analyzed_at: float


@dataclass(frozen=True)
class InFlight:
    previous: Union[Idle, Cached]


CacheState = Union[Idle, InFlight, Cached]


class AnalysisCache:
    """Wrap an expensive analysis call with a cooldown window."""

    def __init__(
        self,
        analyze: Callable[[ProjectContext], Awaitable[SessionAnalysis]],
        cooldown: float = ANALYSIS_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._analyze = analyze
        self.cooldown = cooldown
        self._clock = clock
        self._state: CacheState = Idle()
        self._task: asyncio.Task[SessionAnalysis] | None = None

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def cached(self) -> SessionAnalysis | None:
        settled = self._settled()
        return settled.result if isinstance(settled, Cached) else None

    @property
    def last_analyzed_at(self) -> float | None:
        settled = self._settled()
        if isinstance(settled, Cached):
            return settled.analyzed_at
        return settled.last_analyzed_at

    def can_analyze(self) -> bool:
        """True once the cooldown since the last successful analysis has elapsed."""
        last = self.last_analyzed_at
        return last is None or self._clock() - last > self.cooldown

    async def get_or_analyze(self, context: ProjectContext) -> SessionAnalysis:
        state = self._state
        if isinstance(state, Cached) and self._clock() - state.analyzed_at < self.cooldown:
            logger.debug("Session analysis cache hit")
            return state.result

        if self._task is None:
            previous = state.previous if isinstance(state, InFlight) else state
            self._state = InFlight(previous)
            self._task = asyncio.ensure_future(self._run(context))
            self._task.add_done_callback(_retrieve_exception)

        # Shielded: a caller that stops waiting does not cancel the call itself
        return await asyncio.shield(self._task)

    def clear(self) -> None:
        """Drop the cached result and timestamp. An in-flight call still lands."""
        if isinstance(self._state, InFlight):
            self._state = InFlight(Idle())
        else:
            self._state = Idle()

    async def _run(self, context: ProjectContext) -> SessionAnalysis:
        try:
            result = await self._analyze(context)
        except BaseException as e:
            self._state = self._settled()
            self._task = None
            logger.warning("Session analysis failed, cooldown not started: %s", e)
            raise
        self._state = Cached(result, self._clock())
        self._task = None
        logger.info("Session analysis refreshed (%d recommendations)", len(result.recommendations))
        return result

    def _settled(self) -> Union[Idle, Cached]:
        state = self._state
        return state.previous if isinstance(state, InFlight) else state


def _retrieve_exception(task: asyncio.Task) -> None:
    # Mark retrieved so failures nobody awaited anymore don't warn at shutdown
    if not task.cancelled():
        task.exception()
