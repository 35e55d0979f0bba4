"""Apply line-addressed remediations to the primary document.

Each operation walks Idle → Reading → Editing → Writing → Reanalyzing → Idle,
or ends in Failed. The write of the primary document is the commit point:
nothing is rolled back after it, and a failed re-analysis afterwards only
leaves the suggestions stale.

Moves append to the target file *before* rewriting the primary document, so
a failure can duplicate content (PartialWrite) but never lose it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Literal

from memhealth.curation.text import extract_range, join_lines, remove_lines, split_lines
from memhealth.errors import CurationBusy, InvalidRange, NotFound, PartialWrite
from memhealth.models import ClaudeMdAnalysis

if TYPE_CHECKING:
    from memhealth.memory.backend import MemoryBackend

logger = logging.getLogger(__name__)


class CurationState(str, Enum):
    IDLE = "idle"
    READING = "reading"
    EDITING = "editing"
    WRITING = "writing"
    REANALYZING = "reanalyzing"
    FAILED = "failed"


@dataclass(frozen=True)
class CurationResult:
    """Outcome of a committed curation.

    `analysis` is the fresh critique, or None when re-analysis failed after
    the write; `reanalysis_error` then holds the reason.
    """

    action: Literal["remove", "move"]
    lines_affected: int
    target_file: str | None = None
    analysis: ClaudeMdAnalysis | None = None
    reanalysis_error: Exception | None = None

    @property
    def stale(self) -> bool:
        return self.analysis is None


class CurationApplier:
    """Single-flight curation of one project's primary document."""

    def __init__(
        self,
        backend: MemoryBackend,
        project_path: str,
        on_state_change: Callable[[CurationState], None] | None = None,
    ) -> None:
        self.backend = backend
        self.project_path = project_path
        self._on_state_change = on_state_change
        self._state = CurationState.IDLE
        self._busy = False

    @property
    def state(self) -> CurationState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    async def apply_removal(self, line_numbers: Iterable[int]) -> CurationResult:
        """Drop the given 1-based lines. Numbers past the end are ignored."""
        numbers = set(line_numbers)
        self._acquire()
        try:
            lines = await self._read_lines()

            self._enter(CurationState.EDITING)
            remainder = remove_lines(lines, numbers)
            removed = len(lines) - len(remainder)

            self._enter(CurationState.WRITING)
            await self._guard(self.backend.write_primary_document(
                self.project_path, join_lines(remainder)
            ))
            logger.info("Removed %d line(s) from primary document", removed)

            return await self._reanalyze(CurationResult(action="remove", lines_affected=removed))
        finally:
            self._busy = False

    async def apply_move(self, line_range: tuple[int, int], target_file: str) -> CurationResult:
        """Relocate lines `start..end` (inclusive) to the end of `target_file`."""
        start, end = line_range
        self._acquire()
        try:
            lines = await self._read_lines()

            self._enter(CurationState.EDITING)
            try:
                remainder, extracted = extract_range(lines, start, end)
            except InvalidRange:
                self._enter(CurationState.IDLE)
                raise

            self._enter(CurationState.WRITING)
            await self._guard(self.backend.append_to_file(self.project_path, target_file, extracted))
            try:
                await self.backend.write_primary_document(self.project_path, join_lines(remainder))
            except Exception as e:
                self._enter(CurationState.FAILED)
                logger.warning(
                    "Lines %d-%d appended to %s but primary document rewrite failed: %s",
                    start, end, target_file, e,
                )
                raise PartialWrite(target_file, e) from e
            logger.info("Moved lines %d-%d to %s", start, end, target_file)

            result = CurationResult(
                action="move", lines_affected=end - start + 1, target_file=target_file
            )
            return await self._reanalyze(result)
        finally:
            self._busy = False

    # ── Steps ────────────────────────────────────────────────

    def _acquire(self) -> None:
        if self._busy:
            raise CurationBusy("A curation is already in progress for this document")
        self._busy = True

    async def _read_lines(self) -> list[str]:
        self._enter(CurationState.READING)
        document = await self._guard(self.backend.read_primary_document(self.project_path))
        if not document.exists:
            self._enter(CurationState.FAILED)
            raise NotFound(f"Primary document not found: {document.path}")
        return split_lines(document.content)

    async def _reanalyze(self, result: CurationResult) -> CurationResult:
        self._enter(CurationState.REANALYZING)
        try:
            analysis = await self.backend.analyze_document(self.project_path)
        except Exception as e:
            self._enter(CurationState.FAILED)
            logger.warning("Re-analysis after %s failed, suggestions are stale: %s", result.action, e)
            return replace(result, reanalysis_error=e)
        self._enter(CurationState.IDLE)
        return replace(result, analysis=analysis)

    async def _guard(self, awaitable):
        """Await an I/O step; any failure moves the machine to Failed."""
        try:
            return await awaitable
        except Exception:
            self._enter(CurationState.FAILED)
            raise

    def _enter(self, state: CurationState) -> None:
        self._state = state
        if self._on_state_change:
            self._on_state_change(state)
