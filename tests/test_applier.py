"""Tests for the curation state machine."""

import asyncio

import pytest

from memhealth.curation.analyzer import analyze_text
from memhealth.curation.applier import CurationApplier, CurationState
from memhealth.errors import CurationBusy, InvalidRange, InvalidTarget, NotFound, PartialWrite
from memhealth.memory.backend import LocalBackend
from memhealth.models import PrimaryDocument

DOC = "a\nb\nc\nd\ne"


class FakeBackend:
    """In-memory document store with failure injection."""

    def __init__(self, content=DOC):
        self.content = content
        self.files: dict[str, str] = {}
        self.calls: list[str] = []
        self.fail_append = False
        self.fail_write = False
        self.fail_analyze = False
        self.read_gate: asyncio.Event | None = None

    async def read_primary_document(self, project_path):
        self.calls.append("read")
        if self.read_gate is not None:
            await self.read_gate.wait()
        if self.content is None:
            return PrimaryDocument(exists=False, content="", token_estimate=0, path="CLAUDE.md")
        return PrimaryDocument(exists=True, content=self.content, token_estimate=1, path="CLAUDE.md")

    async def write_primary_document(self, project_path, content):
        self.calls.append("write")
        if self.fail_write:
            raise OSError("disk full")
        self.content = content

    async def append_to_file(self, project_path, relative_target, text):
        self.calls.append("append")
        if self.fail_append:
            raise PermissionError("read-only")
        self.files[relative_target] = self.files.get(relative_target, "") + text

    async def analyze_document(self, project_path):
        self.calls.append("analyze")
        if self.fail_analyze:
            raise RuntimeError("analyzer down")
        return analyze_text(self.content)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def states():
    return []


@pytest.fixture
def applier(backend, states):
    return CurationApplier(backend, "/proj", on_state_change=states.append)


class TestRemoval:
    @pytest.mark.asyncio
    async def test_removes_lines(self, applier, backend, states):
        result = await applier.apply_removal([2, 4])

        assert backend.content == "a\nc\ne"
        assert result.action == "remove"
        assert result.lines_affected == 2
        assert result.analysis is not None
        assert not result.stale
        assert states == [
            CurationState.READING,
            CurationState.EDITING,
            CurationState.WRITING,
            CurationState.REANALYZING,
            CurationState.IDLE,
        ]
        assert applier.state == CurationState.IDLE
        assert not applier.busy

    @pytest.mark.asyncio
    async def test_out_of_range_ignored(self, applier, backend):
        result = await applier.apply_removal([0, 99])
        assert result.lines_affected == 0
        assert backend.content == DOC

    @pytest.mark.asyncio
    async def test_missing_document(self, applier, backend):
        backend.content = None
        with pytest.raises(NotFound):
            await applier.apply_removal([1])
        assert applier.state == CurationState.FAILED
        assert "write" not in backend.calls

    @pytest.mark.asyncio
    async def test_write_failure(self, applier, backend):
        backend.fail_write = True
        with pytest.raises(OSError):
            await applier.apply_removal([1])
        assert applier.state == CurationState.FAILED
        assert not applier.busy

        backend.fail_write = False
        await applier.apply_removal([1])
        assert backend.content == "b\nc\nd\ne"

    @pytest.mark.asyncio
    async def test_reanalysis_failure_is_soft(self, applier, backend):
        backend.fail_analyze = True
        result = await applier.apply_removal([1])

        assert backend.content == "b\nc\nd\ne"
        assert result.stale
        assert isinstance(result.reanalysis_error, RuntimeError)
        assert applier.state == CurationState.FAILED


class TestMove:
    @pytest.mark.asyncio
    async def test_moves_range(self, applier, backend):
        result = await applier.apply_move((2, 4), ".claude/rules/test.md")

        assert backend.content == "a\ne"
        assert backend.files[".claude/rules/test.md"] == "b\nc\nd\n"
        assert result.action == "move"
        assert result.lines_affected == 3
        assert result.target_file == ".claude/rules/test.md"
        assert backend.calls.index("append") < backend.calls.index("write")

    @pytest.mark.asyncio
    async def test_invalid_range(self, applier, backend, states):
        with pytest.raises(InvalidRange):
            await applier.apply_move((4, 9), "t.md")

        assert backend.content == DOC
        assert backend.files == {}
        assert states[-1] == CurationState.IDLE
        assert not applier.busy

    @pytest.mark.asyncio
    async def test_append_failure_leaves_document(self, applier, backend):
        backend.fail_append = True
        with pytest.raises(PermissionError):
            await applier.apply_move((2, 3), "t.md")

        assert backend.content == DOC
        assert "write" not in backend.calls
        assert applier.state == CurationState.FAILED

    @pytest.mark.asyncio
    async def test_partial_write(self, applier, backend):
        backend.fail_write = True
        with pytest.raises(PartialWrite) as exc_info:
            await applier.apply_move((2, 3), "t.md")

        assert exc_info.value.target_file == "t.md"
        assert isinstance(exc_info.value.cause, OSError)
        assert backend.files["t.md"] == "b\nc\n"
        assert backend.content == DOC
        assert applier.state == CurationState.FAILED


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_curation_rejected(self, applier, backend):
        backend.read_gate = asyncio.Event()
        first = asyncio.create_task(applier.apply_removal([1]))
        await asyncio.sleep(0)
        assert applier.busy

        with pytest.raises(CurationBusy):
            await applier.apply_move((2, 3), "t.md")

        backend.read_gate.set()
        result = await first
        assert result.lines_affected == 1
        assert backend.files == {}
        assert not applier.busy


class TestWithLocalBackend:
    @pytest.mark.asyncio
    async def test_move_creates_target(self, tmp_path):
        (tmp_path / "CLAUDE.md").write_text(DOC, encoding="utf-8")
        applier = CurationApplier(LocalBackend(), str(tmp_path))

        await applier.apply_move((2, 4), ".claude/rules/test.md")

        assert (tmp_path / "CLAUDE.md").read_text(encoding="utf-8") == "a\ne"
        assert (tmp_path / ".claude" / "rules" / "test.md").read_text(encoding="utf-8") == "b\nc\nd\n"

    @pytest.mark.asyncio
    async def test_move_appends_to_existing_target(self, tmp_path):
        (tmp_path / "CLAUDE.md").write_text(DOC, encoding="utf-8")
        (tmp_path / "notes.md").write_text("x\n", encoding="utf-8")
        applier = CurationApplier(LocalBackend(), str(tmp_path))

        await applier.apply_move((1, 1), "notes.md")

        assert (tmp_path / "notes.md").read_text(encoding="utf-8") == "x\na\n"

    @pytest.mark.asyncio
    async def test_missing_project(self, tmp_path):
        applier = CurationApplier(LocalBackend(), str(tmp_path / "gone"))
        with pytest.raises(NotFound):
            await applier.apply_removal([1])

    @pytest.mark.asyncio
    async def test_move_outside_project_rejected(self, tmp_path):
        project = tmp_path / "proj"
        project.mkdir()
        (project / "CLAUDE.md").write_text(DOC, encoding="utf-8")
        applier = CurationApplier(LocalBackend(), str(project))

        with pytest.raises(InvalidTarget):
            await applier.apply_move((2, 3), "../escape.md")

        assert (project / "CLAUDE.md").read_text(encoding="utf-8") == DOC
        assert not (tmp_path / "escape.md").exists()
        assert applier.state == CurationState.FAILED
