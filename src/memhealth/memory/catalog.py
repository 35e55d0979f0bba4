"""Memory source discovery.

Every scan re-reads the project from disk and returns a fresh, ordered list:
primary document, local document, rule files, skill files, auto-memory.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import frontmatter

from memhealth.curation.text import document_lines
from memhealth.errors import NotFound
from memhealth.models import MemorySource, SourceKind

logger = logging.getLogger(__name__)

PRIMARY_DOCUMENT = "CLAUDE.md"
LOCAL_DOCUMENT = "CLAUDE.local.md"
RULES_DIR = Path(".claude") / "rules"
SKILLS_DIR = Path(".claude") / "skills"
SKILL_FILE = "SKILL.md"


def claude_project_dir(claude_home: Path, project_path: str) -> Path:
    """Per-project folder used by the assistant: the path with "/" replaced by "-"."""
    return claude_home / "projects" / project_path.replace("/", "-")


class MemorySourceCatalog:
    """Enumerate and classify the memory artifacts of a project."""

    def __init__(self, claude_home: Path | None = None) -> None:
        self.claude_home = claude_home

    def scan(self, project_path: str) -> list[MemorySource]:
        project_dir = Path(project_path)
        if not project_dir.is_dir():
            raise NotFound(f"Project path not found: {project_path}")

        sources: list[MemorySource] = []

        primary = project_dir / PRIMARY_DOCUMENT
        if primary.is_file():
            self._add(sources, primary, "primary-document", PRIMARY_DOCUMENT,
                      "Root project memory file")

        local = project_dir / LOCAL_DOCUMENT
        if local.is_file():
            self._add(sources, local, "local-document", LOCAL_DOCUMENT,
                      "Personal learnings (gitignored)")

        rules_dir = project_dir / RULES_DIR
        if rules_dir.is_dir():
            for path in sorted(rules_dir.glob("*.md")):
                if path.is_file():
                    self._add(sources, path, "rule-file", path.name, f"Rule file: {path.name}")

        skills_dir = project_dir / SKILLS_DIR
        if skills_dir.is_dir():
            for skill_dir in sorted(p for p in skills_dir.iterdir() if p.is_dir()):
                skill_md = skill_dir / SKILL_FILE
                if skill_md.is_file():
                    self._add(sources, skill_md, "skill-file", f"{skill_dir.name}/{SKILL_FILE}",
                              f"Skill definition: {skill_dir.name}")

        if self.claude_home is not None:
            memory_dir = claude_project_dir(self.claude_home, project_path) / "memory"
            if memory_dir.is_dir():
                for path in sorted(memory_dir.glob("*.md")):
                    name = f"{memory_dir.parent.name}/{path.name}"
                    self._add(sources, path, "auto-memory", name, f"Auto-memory: {name}")

        logger.debug("Scanned %s: %d memory sources", project_path, len(sources))
        return sources

    def _add(
        self,
        sources: list[MemorySource],
        path: Path,
        kind: SourceKind,
        name: str,
        description: str,
    ) -> None:
        """Read one artifact; unreadable files are skipped with a warning."""
        try:
            stat = path.stat()
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable memory source %s: %s", path, e)
            return

        if kind in ("rule-file", "skill-file"):
            description = self._frontmatter_description(content) or description

        sources.append(
            MemorySource(
                path=str(path),
                kind=kind,
                name=name,
                line_count=len(document_lines(content)),
                size_bytes=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
                description=description,
            )
        )

    def _frontmatter_description(self, content: str) -> str:
        """Return the YAML frontmatter `description`, if any."""
        try:
            post = frontmatter.loads(content)
        except Exception:
            return ""
        value = post.metadata.get("description", "")
        return str(value).strip() if value else ""
