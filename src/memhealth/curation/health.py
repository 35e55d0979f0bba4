"""Health aggregation over an already-fetched catalog.

Pure and synchronous: no file or network access happens here.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from memhealth.curation.tokens import tokens_for_chars
from memhealth.models import Learning, MemoryHealth, MemorySource

SCORE_LINE_LIMIT = 100


def score_line_count(line_count: int) -> int:
    """Primary-document score: 100 up to 100 lines, then -1 per extra line, floor 0."""
    if line_count <= SCORE_LINE_LIMIT:
        return 100
    return max(0, 100 - (line_count - SCORE_LINE_LIMIT))


def aggregate(
    sources: Sequence[MemorySource],
    primary_doc_score: int,
    learnings: Sequence[Learning] = (),
) -> MemoryHealth:
    """Combine catalog metadata and the primary-document score into one snapshot."""
    if not 0 <= primary_doc_score <= 100:
        raise ValueError(f"primary_doc_score must be within 0..100, got {primary_doc_score}")
    for source in sources:
        if source.line_count < 0 or source.size_bytes < 0:
            raise ValueError(f"Negative counts in memory source {source.path}")

    kinds = Counter(source.kind for source in sources)
    primary_lines = sum(s.line_count for s in sources if s.kind == "primary-document")

    return MemoryHealth(
        total_sources=len(sources),
        total_lines=sum(s.line_count for s in sources),
        total_learnings=len(learnings),
        active_learnings=sum(1 for learning in learnings if learning.is_active),
        primary_doc_lines=primary_lines,
        primary_doc_score=primary_doc_score,
        rules_file_count=kinds["rule-file"],
        skills_count=kinds["skill-file"],
        estimated_token_usage=tokens_for_chars(sum(s.size_bytes for s in sources)),
    )
