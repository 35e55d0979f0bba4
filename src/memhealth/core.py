"""Curator: the entry point callers (UI, CLI) talk to.

Responsibilities:
1. Catalog & health: scan memory sources, aggregate a health snapshot
2. Document analysis: critique the primary document, keep the latest result
3. Curation: apply removals/moves, single-flight per document
4. Learnings: list, toggle status, promote into durable artifacts
5. Session analysis: AI recommendations behind a cooldown cache

Every call re-reads what it needs through the backend and returns a snapshot.
The only state held here is the latest analysis and the session cache.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from memhealth.curation.applier import CurationApplier, CurationResult, CurationState
from memhealth.curation.cache import ANALYSIS_COOLDOWN_SECONDS, AnalysisCache
from memhealth.curation.tokens import CONTEXT_WINDOW_TOKENS
from memhealth.errors import Unavailable
from memhealth.memory.backend import LocalBackend
from memhealth.memory.catalog import MemorySourceCatalog
from memhealth.models import (
    ClaudeMdAnalysis,
    Learning,
    MemoryHealth,
    MemorySource,
    ProjectContext,
    SessionAnalysis,
)
from memhealth.session.analysis import SessionTranscriptAnalyzer

if TYPE_CHECKING:
    from memhealth.config import MemhealthConfig
    from memhealth.engines.base import Engine
    from memhealth.memory.backend import MemoryBackend

logger = logging.getLogger(__name__)


class Curator:
    """Memory health and curation for one project."""

    def __init__(
        self,
        backend: MemoryBackend,
        project: ProjectContext,
        *,
        cooldown: float = ANALYSIS_COOLDOWN_SECONDS,
        context_window: int = CONTEXT_WINDOW_TOKENS,
        clock: Callable[[], float] = time.monotonic,
        on_state_change: Callable[[CurationState], None] | None = None,
    ) -> None:
        self.backend = backend
        self.project = project
        self.context_window = context_window
        self.analysis: ClaudeMdAnalysis | None = None
        self._applier = CurationApplier(backend, project.path, on_state_change=on_state_change)
        self._session_cache = AnalysisCache(
            backend.analyze_session_transcript, cooldown=cooldown, clock=clock
        )

    @classmethod
    def from_config(cls, config: MemhealthConfig, project: ProjectContext) -> Curator:
        """Wire a LocalBackend and, when credentials exist, the Anthropic engine."""
        engine = _build_engine(config)
        session_analyzer = SessionTranscriptAnalyzer(
            engine,
            config.claude_home,
            max_messages=config.analysis.max_transcript_messages,
            message_truncate=config.analysis.message_truncate,
        )
        backend = LocalBackend(
            catalog=MemorySourceCatalog(config.claude_home),
            session_analyzer=session_analyzer,
        )
        return cls(
            backend,
            project,
            cooldown=config.analysis.cooldown_seconds,
            context_window=config.analysis.context_window,
        )

    # ── Catalog & health ─────────────────────────────────────

    async def scan_catalog(self) -> list[MemorySource]:
        return await self.backend.scan_memory_sources(self.project.path)

    async def load_health(self) -> MemoryHealth:
        return await self.backend.compute_memory_health(self.project.path)

    def context_percentage(self, health: MemoryHealth) -> float:
        return health.context_percentage(self.context_window)

    # ── Document analysis & curation ─────────────────────────

    async def run_document_analysis(self) -> ClaudeMdAnalysis:
        self.analysis = await self.backend.analyze_document(self.project.path)
        return self.analysis

    @property
    def curation_state(self) -> CurationState:
        return self._applier.state

    @property
    def curation_in_progress(self) -> bool:
        return self._applier.busy

    async def apply_removal(self, line_numbers: Iterable[int]) -> CurationResult:
        result = await self._applier.apply_removal(line_numbers)
        # A stale analysis must not survive a write: its line numbers are meaningless now
        self.analysis = result.analysis
        return result

    async def apply_move(self, line_range: tuple[int, int], target_file: str) -> CurationResult:
        result = await self._applier.apply_move(line_range, target_file)
        self.analysis = result.analysis
        return result

    # ── Learnings ────────────────────────────────────────────

    async def load_learnings(self) -> list[Learning]:
        return await self.backend.list_learnings(self.project.path)

    async def update_learning_status(self, id: str, status: str) -> Learning:
        return await self.backend.set_learning_status(self.project.path, id, status)

    async def promote_learning(self, id: str, target: str) -> Learning:
        learning = await self.backend.promote_learning(self.project.path, id, target)
        logger.info("Learning %s promoted to %s", id, target)
        return learning

    # ── Session analysis ─────────────────────────────────────

    async def get_session_analysis(self) -> SessionAnalysis:
        return await self._session_cache.get_or_analyze(self.project)

    def can_run_session_analysis(self) -> bool:
        return self._session_cache.can_analyze()

    def clear_session_analysis(self) -> None:
        self._session_cache.clear()


def _build_engine(config: MemhealthConfig) -> Engine | None:
    from memhealth.engines.anthropic_api import AnthropicAPIEngine

    try:
        return AnthropicAPIEngine(
            model=config.engine.model,
            max_tokens=config.engine.max_tokens,
            timeout=config.engine.timeout,
            api_key=config.engine.api_key,
        )
    except Unavailable as e:
        logger.info("Session analysis disabled: %s", e)
        return None


def project_context(path: str, name: str | None = None, **kwargs: str | None) -> ProjectContext:
    """ProjectContext for a directory, naming it after the folder by default."""
    resolved = str(Path(path).expanduser().resolve())
    return ProjectContext(path=resolved, name=name or Path(resolved).name, **kwargs)
