"""Backend operations the curation engine consumes.

`MemoryBackend` is the boundary: everything behind it does I/O, everything in
front of it (text splicing, token math, aggregation) is pure. `LocalBackend`
implements it against the project directory, running blocking file access in
worker threads.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from memhealth.curation.analyzer import DocumentAnalyzer, HeuristicDocumentAnalyzer
from memhealth.curation.health import aggregate, score_line_count
from memhealth.curation.tokens import estimate_tokens
from memhealth.errors import InvalidTarget, NotFound, Unavailable
from memhealth.memory.catalog import PRIMARY_DOCUMENT, MemorySourceCatalog
from memhealth.memory.learnings import LearningStore
from memhealth.models import (
    ClaudeMdAnalysis,
    Learning,
    MemoryHealth,
    MemorySource,
    PrimaryDocument,
    ProjectContext,
    SessionAnalysis,
)
from memhealth.session.analysis import SessionTranscriptAnalyzer

logger = logging.getLogger(__name__)


@runtime_checkable
class MemoryBackend(Protocol):
    async def read_primary_document(self, project_path: str) -> PrimaryDocument: ...

    async def write_primary_document(self, project_path: str, content: str) -> None: ...

    async def append_to_file(self, project_path: str, relative_target: str, text: str) -> None: ...

    async def scan_memory_sources(self, project_path: str) -> list[MemorySource]: ...

    async def compute_memory_health(self, project_path: str) -> MemoryHealth: ...

    async def analyze_document(self, project_path: str) -> ClaudeMdAnalysis: ...

    async def list_learnings(self, project_path: str) -> list[Learning]: ...

    async def set_learning_status(self, project_path: str, id: str, status: str) -> Learning: ...

    async def promote_learning(self, project_path: str, id: str, target: str) -> Learning: ...

    async def analyze_session_transcript(self, project: ProjectContext) -> SessionAnalysis: ...


class LocalBackend:
    """Filesystem implementation of MemoryBackend."""

    def __init__(
        self,
        catalog: MemorySourceCatalog | None = None,
        analyzer: DocumentAnalyzer | None = None,
        session_analyzer: SessionTranscriptAnalyzer | None = None,
    ) -> None:
        self.catalog = catalog or MemorySourceCatalog()
        self.analyzer = analyzer or HeuristicDocumentAnalyzer()
        self.session_analyzer = session_analyzer

    # ── Primary document ─────────────────────────────────────

    async def read_primary_document(self, project_path: str) -> PrimaryDocument:
        return await asyncio.to_thread(_read_primary, Path(project_path))

    async def write_primary_document(self, project_path: str, content: str) -> None:
        project_dir = Path(project_path)
        if not project_dir.is_dir():
            raise NotFound(f"Project path not found: {project_path}")
        path = project_dir / PRIMARY_DOCUMENT
        await asyncio.to_thread(path.write_text, content, encoding="utf-8")
        logger.info("Wrote %s (%d chars)", path, len(content))

    async def append_to_file(self, project_path: str, relative_target: str, text: str) -> None:
        """Append to a project file, creating it and its parents if absent.

        The target must resolve inside the project directory.
        """
        project_dir = Path(project_path)
        if not project_dir.is_dir():
            raise NotFound(f"Project path not found: {project_path}")
        target = (project_dir / relative_target).resolve()
        if not target.is_relative_to(project_dir.resolve()):
            raise InvalidTarget(f"Target {relative_target} is outside the project directory")
        await asyncio.to_thread(_append, target, text)

    # ── Catalog & health ─────────────────────────────────────

    async def scan_memory_sources(self, project_path: str) -> list[MemorySource]:
        return await asyncio.to_thread(self.catalog.scan, project_path)

    async def compute_memory_health(self, project_path: str) -> MemoryHealth:
        sources = await self.scan_memory_sources(project_path)
        learnings = await self.list_learnings(project_path)
        primary = next((s for s in sources if s.kind == "primary-document"), None)
        # An empty primary document carries no memory
        score = score_line_count(primary.line_count) if primary and primary.line_count else 0
        return aggregate(sources, score, learnings)

    async def analyze_document(self, project_path: str) -> ClaudeMdAnalysis:
        if not Path(project_path).is_dir():
            raise NotFound(f"Project path not found: {project_path}")
        return await self.analyzer.analyze(project_path)

    # ── Learnings ────────────────────────────────────────────

    async def list_learnings(self, project_path: str) -> list[Learning]:
        return await asyncio.to_thread(LearningStore(project_path).list_learnings)

    async def set_learning_status(self, project_path: str, id: str, status: str) -> Learning:
        return await asyncio.to_thread(LearningStore(project_path).set_status, id, status)

    async def promote_learning(self, project_path: str, id: str, target: str) -> Learning:
        return await asyncio.to_thread(LearningStore(project_path).promote, id, target)

    # ── Session analysis ─────────────────────────────────────

    async def analyze_session_transcript(self, project: ProjectContext) -> SessionAnalysis:
        if self.session_analyzer is None:
            raise Unavailable("Session analysis is not configured.")
        return await self.session_analyzer.analyze(project)


def _read_primary(project_dir: Path) -> PrimaryDocument:
    if not project_dir.is_dir():
        raise NotFound(f"Project path not found: {project_dir}")
    path = project_dir / PRIMARY_DOCUMENT
    if not path.exists():
        return PrimaryDocument(exists=False, content="", token_estimate=0, path=str(path))
    content = path.read_text(encoding="utf-8")
    return PrimaryDocument(
        exists=True, content=content, token_estimate=estimate_tokens(content), path=str(path)
    )


def _append(target: Path, text: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("a", encoding="utf-8") as f:
        f.write(text)
