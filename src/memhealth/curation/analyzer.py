"""Primary-document analysis.

`DocumentAnalyzer` is the contract the curation engine consumes. The bundled
`HeuristicDocumentAnalyzer` scores by length, flags self-evident advice for
removal and fenced code blocks for relocation into rule files.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from memhealth.curation.health import score_line_count
from memhealth.curation.text import document_lines
from memhealth.curation.tokens import estimate_tokens
from memhealth.memory.catalog import PRIMARY_DOCUMENT
from memhealth.models import (
    AnalysisSuggestion,
    ClaudeMdAnalysis,
    LineMoveTarget,
    LineRemovalSuggestion,
)

logger = logging.getLogger(__name__)

SELF_EVIDENT_PHRASES = (
    "write clean code",
    "follow best practices",
    "use meaningful variable names",
    "add comments where necessary",
    "keep functions small",
    "don't repeat yourself",
    "write readable code",
    "handle errors properly",
    "use proper indentation",
    "follow coding standards",
    "write maintainable code",
    "use descriptive names",
)

RULES_DIR_HINT = ".claude/rules/"
RULES_TARGET = ".claude/rules/code-examples.md"
SHORTEN_THRESHOLD = 150


@runtime_checkable
class DocumentAnalyzer(Protocol):
    """Produces a critique of a project's primary document.

    Implementations may raise Unavailable, RateLimited or Unreachable.
    """

    async def analyze(self, project_path: str) -> ClaudeMdAnalysis: ...


class HeuristicDocumentAnalyzer:
    """Local, rule-based analyzer. Needs no credentials."""

    async def analyze(self, project_path: str) -> ClaudeMdAnalysis:
        path = Path(project_path) / PRIMARY_DOCUMENT
        content = await asyncio.to_thread(_read_if_exists, path)
        if content is None:
            return ClaudeMdAnalysis(
                total_lines=0,
                estimated_tokens=0,
                score=0,
                suggestions=(
                    AnalysisSuggestion(
                        suggestion_type="add",
                        message="No CLAUDE.md found. Create one to establish project memory.",
                    ),
                ),
            )
        return analyze_text(content)


def _read_if_exists(path: Path) -> str | None:
    if not path.exists():
        return None
    return path.read_text(encoding="utf-8")


def analyze_text(content: str) -> ClaudeMdAnalysis:
    """Analyze a primary-document body."""
    lines = document_lines(content)
    total_lines = len(lines)

    sections = tuple(
        line[3:].strip() for line in lines if line.startswith("## ")
    )
    lines_to_remove = _find_self_evident(lines)
    lines_to_move = _find_code_blocks(lines)

    suggestions: list[AnalysisSuggestion] = []
    if lines_to_remove:
        suggestions.append(
            AnalysisSuggestion(
                suggestion_type="remove",
                message=(
                    f"Found {len(lines_to_remove)} lines with self-evident advice "
                    "that can be removed"
                ),
            )
        )
    if lines_to_move:
        suggestions.append(
            AnalysisSuggestion(
                suggestion_type="move",
                message=(
                    f"Found {len(lines_to_move)} code block(s) that could be moved "
                    f"to {RULES_DIR_HINT} files"
                ),
                target=RULES_DIR_HINT,
            )
        )
    if total_lines > SHORTEN_THRESHOLD:
        suggestions.append(
            AnalysisSuggestion(
                suggestion_type="shorten",
                message=(
                    f"CLAUDE.md is {total_lines} lines (target: <{SHORTEN_THRESHOLD}). "
                    "Consider moving detailed sections to rules files or skills."
                ),
            )
        )
    if total_lines > 0:
        lowered = [s.lower() for s in sections]
        if not any("overview" in s or "about" in s for s in lowered):
            suggestions.append(
                AnalysisSuggestion(
                    suggestion_type="add",
                    message="Consider adding an '## Overview' section to summarize the project",
                )
            )
        if not any("command" in s or "script" in s or "run" in s for s in lowered):
            suggestions.append(
                AnalysisSuggestion(
                    suggestion_type="add",
                    message="Consider adding a '## Commands' section with common dev commands",
                )
            )

    return ClaudeMdAnalysis(
        total_lines=total_lines,
        estimated_tokens=estimate_tokens(content),
        score=score_line_count(total_lines),
        sections=sections,
        suggestions=tuple(suggestions),
        lines_to_remove=tuple(lines_to_remove),
        lines_to_move=tuple(lines_to_move),
    )


def _find_self_evident(lines: list[str]) -> list[LineRemovalSuggestion]:
    found = []
    for number, line in enumerate(lines, start=1):
        lower = line.lower()
        for phrase in SELF_EVIDENT_PHRASES:
            if phrase in lower:
                found.append(
                    LineRemovalSuggestion(
                        line_number=number,
                        content=line,
                        reason=(
                            f"Self-evident: '{phrase}' is a general best practice "
                            "that doesn't need to be stated"
                        ),
                    )
                )
                break
    return found


def _find_code_blocks(lines: list[str]) -> list[LineMoveTarget]:
    """Closed ``` fences, as 1-based inclusive ranges covering both fence lines."""
    found = []
    open_at: int | None = None
    for index, line in enumerate(lines):
        if not line.startswith("```"):
            continue
        if open_at is None:
            open_at = index
            continue
        found.append(
            LineMoveTarget(
                line_range=(open_at + 1, index + 1),
                content_preview="\n".join(lines[open_at : index + 1][:3]),
                target_file=RULES_TARGET,
                reason=(
                    "Code examples are better placed in rules files where they serve "
                    "as reference without inflating CLAUDE.md"
                ),
            )
        )
        open_at = None
    return found
