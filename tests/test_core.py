"""Tests for the Curator facade and the CLI."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from memhealth.__main__ import main
from memhealth.config import MemhealthConfig
from memhealth.core import Curator, project_context
from memhealth.curation.applier import CurationState
from memhealth.errors import NotFound, Unavailable
from memhealth.memory.backend import LocalBackend
from memhealth.models import SessionAnalysis, SessionRecommendation

DOC = """\
# Project

## Overview
A small service.

## Rules
- Always write clean code
- Use pnpm for packages
- Follow best practices at all times

## Commands
```bash
pnpm test
```
"""

LOCAL = """\
## Session ABC123 (2026-02-16 10:30)

- [Pattern] Always use pnpm not npm | topic:tools | confidence:high
- [Gotcha] Tests need the DB container running
"""


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def project_dir(tmp_path):
    root = tmp_path / "proj"
    root.mkdir()
    (root / "CLAUDE.md").write_text(DOC, encoding="utf-8")
    (root / "CLAUDE.local.md").write_text(LOCAL, encoding="utf-8")
    rules = root / ".claude" / "rules"
    rules.mkdir(parents=True)
    (rules / "style.md").write_text("---\ndescription: Style guide\n---\nUse black.\n", encoding="utf-8")
    return root


@pytest.fixture
def curator(project_dir):
    return Curator(LocalBackend(), project_context(str(project_dir)))


class TestCatalogAndHealth:
    @pytest.mark.asyncio
    async def test_scan(self, curator):
        sources = await curator.scan_catalog()
        assert [s.kind for s in sources] == ["primary-document", "local-document", "rule-file"]
        assert sources[2].description == "Style guide"

    @pytest.mark.asyncio
    async def test_health(self, curator):
        health = await curator.load_health()
        assert health.total_sources == 3
        assert health.primary_doc_lines == 14
        assert health.primary_doc_score == 100
        assert health.health_rating == "excellent"
        assert health.rules_file_count == 1
        assert health.total_learnings == 2
        assert health.active_learnings == 2
        assert 0 < curator.context_percentage(health) < 1

    @pytest.mark.asyncio
    async def test_health_without_primary_document(self, project_dir, curator):
        (project_dir / "CLAUDE.md").unlink()
        health = await curator.load_health()
        assert health.primary_doc_score == 0
        assert health.health_rating == "poor"

    @pytest.mark.asyncio
    async def test_missing_project(self, tmp_path):
        curator = Curator(LocalBackend(), project_context(str(tmp_path / "gone")))
        with pytest.raises(NotFound):
            await curator.scan_catalog()

    def test_project_context_defaults_name(self, project_dir):
        context = project_context(str(project_dir), language="Python")
        assert context.name == "proj"
        assert context.language == "Python"
        assert context.framework is None


class TestCuration:
    @pytest.mark.asyncio
    async def test_analyze_then_remove_then_move(self, project_dir):
        states = []
        curator = Curator(
            LocalBackend(), project_context(str(project_dir)), on_state_change=states.append
        )

        analysis = await curator.run_document_analysis()
        assert analysis.removable_line_numbers == {7, 9}

        result = await curator.apply_removal(analysis.removable_line_numbers)
        assert result.lines_affected == 2
        assert curator.analysis is result.analysis
        assert curator.analysis.lines_to_remove == ()
        assert "clean code" not in (project_dir / "CLAUDE.md").read_text(encoding="utf-8")

        move = curator.analysis.lines_to_move[0]
        await curator.apply_move(move.line_range, move.target_file)

        moved = (project_dir / move.target_file).read_text(encoding="utf-8")
        assert moved == "```bash\npnpm test\n```\n"
        assert "```" not in (project_dir / "CLAUDE.md").read_text(encoding="utf-8")
        assert curator.analysis.lines_to_move == ()
        assert curator.curation_state == CurationState.IDLE
        assert not curator.curation_in_progress
        assert states.count(CurationState.IDLE) == 2

    @pytest.mark.asyncio
    async def test_removal_targets_suggested_line_with_unicode_separators(self, project_dir):
        (project_dir / "CLAUDE.md").write_text(
            "# Notes\u2028pasted\nWrite clean code always\nkeep me\n", encoding="utf-8"
        )
        curator = Curator(LocalBackend(), project_context(str(project_dir)))

        analysis = await curator.run_document_analysis()
        assert analysis.removable_line_numbers == {2}
        await curator.apply_removal(analysis.removable_line_numbers)

        assert (project_dir / "CLAUDE.md").read_text(encoding="utf-8") == (
            "# Notes\u2028pasted\nkeep me\n"
        )

    @pytest.mark.asyncio
    async def test_stale_analysis_cleared(self, project_dir):
        backend = LocalBackend()
        curator = Curator(backend, project_context(str(project_dir)))
        await curator.run_document_analysis()

        backend.analyzer = MagicMock()
        backend.analyzer.analyze = AsyncMock(side_effect=RuntimeError("down"))
        result = await curator.apply_removal([1])

        assert result.stale
        assert curator.analysis is None
        assert curator.curation_state == CurationState.FAILED


class TestLearnings:
    @pytest.mark.asyncio
    async def test_lifecycle(self, project_dir, curator):
        first, second = await curator.load_learnings()

        verified = await curator.update_learning_status(first.id, "verified")
        assert verified.status == "verified"

        promoted = await curator.promote_learning(second.id, ".claude/rules/gotchas.md")
        assert promoted.status == "promoted"
        assert (project_dir / ".claude" / "rules" / "gotchas.md").read_text(encoding="utf-8") == (
            "- Tests need the DB container running\n"
        )

        health = await curator.load_health()
        assert health.active_learnings == 1
        assert health.rules_file_count == 2


class TestSessionAnalysis:
    @pytest.fixture
    def result(self):
        return SessionAnalysis(
            recommendations=(
                SessionRecommendation("pattern", "Use pnpm", "r", "d", 1),
            ),
            session_summary="Tooling work.",
            analyzed_at="2026-10-19T00:00:00+00:00",
            messages_analyzed=4,
        )

    @pytest.mark.asyncio
    async def test_cached_within_cooldown(self, project_dir, result):
        session_analyzer = MagicMock()
        session_analyzer.analyze = AsyncMock(return_value=result)
        clock = FakeClock()
        curator = Curator(
            LocalBackend(session_analyzer=session_analyzer),
            project_context(str(project_dir)),
            cooldown=300,
            clock=clock,
        )

        assert curator.can_run_session_analysis()
        assert await curator.get_session_analysis() is result
        clock.now += 60
        assert await curator.get_session_analysis() is result
        assert not curator.can_run_session_analysis()
        session_analyzer.analyze.assert_awaited_once()

        curator.clear_session_analysis()
        assert curator.can_run_session_analysis()

    @pytest.mark.asyncio
    async def test_unconfigured(self, project_dir):
        curator = Curator(LocalBackend(), project_context(str(project_dir)))
        with pytest.raises(Unavailable):
            await curator.get_session_analysis()
        assert curator.can_run_session_analysis()

    @pytest.mark.asyncio
    async def test_from_config_without_key(self, project_dir, tmp_path, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        config = MemhealthConfig(claude_home=tmp_path / "claude")
        curator = Curator.from_config(config, project_context(str(project_dir)))

        with pytest.raises(Unavailable):
            await curator.get_session_analysis()
        assert len(await curator.scan_catalog()) == 3


class TestCLI:
    @pytest.fixture(autouse=True)
    def isolated(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.setenv("MEMHEALTH_CLAUDE_HOME", str(tmp_path / "claude"))
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    def test_health(self, project_dir, capsys):
        assert main(["--project", str(project_dir), "health"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["health_rating"] == "excellent"
        assert "context_percentage" in data

    def test_remove(self, project_dir, capsys):
        assert main(["--project", str(project_dir), "remove", "7", "9"]) == 0
        assert json.loads(capsys.readouterr().out)["lines_removed"] == 2

    def test_learnings(self, project_dir, capsys):
        assert main(["--project", str(project_dir), "learnings"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert [item["category"] for item in data] == ["Pattern", "Gotcha"]

    def test_error_exit(self, tmp_path, capsys):
        assert main(["--project", str(tmp_path / "gone"), "scan"]) == 1
        assert "error: Project path not found" in capsys.readouterr().err

    def test_session_unavailable(self, project_dir, capsys):
        assert main(["--project", str(project_dir), "session"]) == 1
        assert "ANTHROPIC_API_KEY" in capsys.readouterr().err
