"""Value snapshots passed between the engine, its backends and callers.

All models are frozen: a scan, analysis or health computation produces a new
snapshot which replaces the previous one wholesale.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Literal

from memhealth.curation.tokens import CONTEXT_WINDOW_TOKENS, budget_percentage

SourceKind = Literal[
    "primary-document",
    "local-document",
    "rule-file",
    "skill-file",
    "auto-memory",
]
HealthRating = Literal["excellent", "good", "needs-attention", "poor"]
LearningStatus = Literal["pending", "verified", "rejected", "promoted"]

LEARNING_STATUSES: tuple[str, ...] = ("pending", "verified", "rejected", "promoted")
ACTIVE_LEARNING_STATUSES = frozenset({"pending", "verified"})

# (minimum primary-document score, rating), checked top-down
RATING_THRESHOLDS: tuple[tuple[int, HealthRating], ...] = (
    (80, "excellent"),
    (60, "good"),
    (40, "needs-attention"),
)


def rating_for_score(score: int) -> HealthRating:
    """Map a primary-document quality score (0-100) onto the rating scale."""
    for minimum, rating in RATING_THRESHOLDS:
        if score >= minimum:
            return rating
    return "poor"


@dataclass(frozen=True)
class MemorySource:
    """One memory artifact found by a catalog scan."""

    path: str
    kind: SourceKind
    name: str
    line_count: int
    size_bytes: int
    last_modified: str
    description: str


@dataclass(frozen=True)
class MemoryHealth:
    """Aggregate health snapshot.

    `health_rating` is derived from `primary_doc_score` and cannot be passed in.
    """

    total_sources: int
    total_lines: int
    total_learnings: int
    active_learnings: int
    primary_doc_lines: int
    primary_doc_score: int
    rules_file_count: int
    skills_count: int
    estimated_token_usage: int
    health_rating: HealthRating = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "health_rating", rating_for_score(self.primary_doc_score))

    def context_percentage(self, ceiling: int = CONTEXT_WINDOW_TOKENS) -> float:
        return budget_percentage(self.estimated_token_usage, ceiling)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Learning:
    """An extracted insight candidate with a verification lifecycle."""

    id: str
    session_id: str
    category: str
    content: str
    topic: str | None
    confidence: str
    status: LearningStatus
    source_file: str
    created_at: str
    updated_at: str

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_LEARNING_STATUSES


@dataclass(frozen=True)
class AnalysisSuggestion:
    suggestion_type: str
    message: str
    line_range: tuple[int, int] | None = None
    target: str | None = None


@dataclass(frozen=True)
class LineRemovalSuggestion:
    line_number: int
    content: str
    reason: str


@dataclass(frozen=True)
class LineMoveTarget:
    line_range: tuple[int, int]
    content_preview: str
    target_file: str
    reason: str

    @property
    def start(self) -> int:
        return self.line_range[0]

    @property
    def end(self) -> int:
        return self.line_range[1]


@dataclass(frozen=True)
class ClaudeMdAnalysis:
    """Critique of the primary document.

    Line numbers are 1-based and refer to the document as it was when the
    analysis ran. Any mutation of the document makes them stale.
    """

    total_lines: int
    estimated_tokens: int
    score: int
    sections: tuple[str, ...] = ()
    suggestions: tuple[AnalysisSuggestion, ...] = ()
    lines_to_remove: tuple[LineRemovalSuggestion, ...] = ()
    lines_to_move: tuple[LineMoveTarget, ...] = ()

    @property
    def removable_line_numbers(self) -> frozenset[int]:
        return frozenset(s.line_number for s in self.lines_to_remove)

    @property
    def move_ranges(self) -> list[tuple[int, int, str]]:
        return [(m.start, m.end, m.target_file) for m in self.lines_to_move]


@dataclass(frozen=True)
class PrimaryDocument:
    """Result of reading the primary document."""

    exists: bool
    content: str
    token_estimate: int
    path: str


@dataclass(frozen=True)
class SessionRecommendation:
    rec_type: str
    title: str
    reason: str
    details: str
    priority: int


@dataclass(frozen=True)
class SessionAnalysis:
    recommendations: tuple[SessionRecommendation, ...]
    session_summary: str
    analyzed_at: str
    messages_analyzed: int


@dataclass(frozen=True)
class ProjectContext:
    """Identifies the active project for session analysis."""

    path: str
    name: str
    language: str | None = None
    framework: str | None = None
