"""Engine protocol and shared types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass
class AgentResponse:
    """Response from an AI engine."""

    text: str
    cost_usd: float | None = None
    model: str | None = None


@runtime_checkable
class Engine(Protocol):
    """Protocol that all engine backends must implement.

    `send` raises Unavailable, RateLimited or Unreachable (memhealth.errors)
    instead of returning error text, so callers can tell a failed call from
    an answer.
    """

    async def send(
        self,
        message: str,
        *,
        system_prompt: str | None = None,
    ) -> AgentResponse:
        """Send a single-turn message to the engine and return the response."""
        ...
