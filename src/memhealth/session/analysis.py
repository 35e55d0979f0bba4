"""Session analysis prompt building and response parsing.

The analyzer reads the recent session transcript, asks the AI engine for
workflow recommendations and parses the JSON it returns.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from memhealth.errors import MalformedResponse, NotFound, Unavailable
from memhealth.models import ProjectContext, SessionAnalysis, SessionRecommendation
from memhealth.session.transcript import find_session_transcript, read_recent_messages

if TYPE_CHECKING:
    from memhealth.engines.base import Engine

logger = logging.getLogger(__name__)

RECOMMENDATION_TYPES = ("agent", "test", "pattern", "doc", "skill")

SESSION_SYSTEM_PROMPT = """\
You are an expert at analyzing Claude Code session transcripts to help developers \
improve their workflow.

Analyze the conversation and suggest specific, actionable improvements. Return ONLY \
a JSON object (no markdown, no explanation):

{
  "session_summary": "1-2 sentence summary of what the developer has been working on",
  "recommendations": [
    {
      "rec_type": "agent|test|pattern|doc|skill",
      "title": "Short actionable title (5-8 words)",
      "reason": "Why this is valuable based on the session context",
      "details": "Specific implementation details",
      "priority": 1
    }
  ]
}

RECOMMENDATION TYPES:
1. "agent" - Specialized subagent for repeated multi-step or error-prone workflows.
   Details: agent name, what it automates, key steps.
2. "test" - Specific test cases for code being written.
   Details: test name, what it verifies, input/output expectations.
3. "pattern" - Pattern to add to CLAUDE.md for future sessions.
   Details: the pattern text to add (concise, actionable).
4. "doc" - Documentation updates needed for modified files.
   Details: file path and what needs documenting.
5. "skill" - Reusable prompt template for repeated tasks.
   Details: skill name and the prompt template.

GUIDELINES:
- Only suggest 2-4 HIGH-VALUE recommendations (quality over quantity)
- Be SPECIFIC - use actual names, paths, and details from the session
- Priority 1 = immediate impact, 3 = would be helpful, 5 = nice to have
- Skip obvious or trivial suggestions
- Focus on things that would SAVE TIME or PREVENT MISTAKES in future sessions
"""

SESSION_PROMPT_TEMPLATE = """\
Project: {name} ({stack})

Recent Claude Code session transcript:

{transcript}

Analyze and provide recommendations as JSON."""


def describe_stack(language: str | None, framework: str | None) -> str:
    if language and framework:
        return f"{language} with {framework}"
    return language or framework or "Unknown stack"


def build_session_prompt(project: ProjectContext, messages: list[str]) -> str:
    """Build the user prompt for a session analysis."""
    return SESSION_PROMPT_TEMPLATE.format(
        name=project.name,
        stack=describe_stack(project.language, project.framework),
        transcript="\n\n".join(messages),
    )


def parse_session_response(response_text: str, messages_analyzed: int) -> SessionAnalysis:
    """Parse the engine reply into a SessionAnalysis.

    Tolerates prose or code fences around the JSON object.
    """
    start = response_text.find("{")
    end = response_text.rfind("}")
    payload = response_text[start : end + 1] if start != -1 and end > start else response_text
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedResponse(
            f"Failed to parse AI response: {e}. Response: {response_text[:200]}"
        ) from e
    if not isinstance(data, dict):
        raise MalformedResponse(f"Expected a JSON object, got: {response_text[:200]}")

    recommendations = []
    for raw in data.get("recommendations") or []:
        if not isinstance(raw, dict):
            continue
        rec_type = str(raw.get("rec_type", "")).strip().lower()
        if rec_type not in RECOMMENDATION_TYPES:
            logger.debug("Dropping recommendation with unknown type: %r", rec_type)
            continue
        recommendations.append(
            SessionRecommendation(
                rec_type=rec_type,
                title=str(raw.get("title", "")),
                reason=str(raw.get("reason", "")),
                details=str(raw.get("details", "")),
                priority=_clamp_priority(raw.get("priority")),
            )
        )

    return SessionAnalysis(
        recommendations=tuple(recommendations),
        session_summary=data.get("session_summary") or "Session analysis complete.",
        analyzed_at=datetime.now(timezone.utc).isoformat(),
        messages_analyzed=messages_analyzed,
    )


def _clamp_priority(value: object) -> int:
    try:
        priority = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 3
    return min(max(priority, 1), 5)


class SessionTranscriptAnalyzer:
    """Analyze the latest session transcript of a project with an AI engine."""

    def __init__(
        self,
        engine: Engine | None,
        claude_home: Path,
        max_messages: int = 30,
        message_truncate: int = 800,
    ) -> None:
        self.engine = engine
        self.claude_home = claude_home
        self.max_messages = max_messages
        self.message_truncate = message_truncate

    async def analyze(self, project: ProjectContext) -> SessionAnalysis:
        if self.engine is None:
            raise Unavailable("Anthropic API key not configured. Set ANTHROPIC_API_KEY.")

        transcript = await asyncio.to_thread(
            find_session_transcript, self.claude_home, project.path
        )
        if transcript is None:
            raise NotFound("No session transcript found. Start a Claude Code session first.")

        messages = await asyncio.to_thread(
            read_recent_messages, transcript, self.max_messages, self.message_truncate
        )
        if not messages:
            raise NotFound("No recent messages found in session transcript.")

        logger.info("Analyzing %d messages from %s", len(messages), transcript.name)
        response = await self.engine.send(
            build_session_prompt(project, messages),
            system_prompt=SESSION_SYSTEM_PROMPT,
        )
        if response.cost_usd is not None:
            logger.info(
                "Session analysis reply from %s (approx. $%.4f)",
                response.model or "unknown model", response.cost_usd,
            )
        return parse_session_response(response.text, len(messages))
