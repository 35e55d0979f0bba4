"""Learnings parsed from CLAUDE.local.md, with a JSON status overlay.

CLAUDE.local.md is the source of truth for learning content. Lifecycle status
lives beside it in `.claude/learnings.json` so the markdown is never rewritten
just to flip a status.

Format:
    ## Session ABC123 (2026-02-16 10:30)

    - [Pattern] Always use pnpm not npm | topic:tools | confidence:high
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path

from memhealth.errors import InvalidTransition, NotFound, PartialWrite
from memhealth.memory.catalog import LOCAL_DOCUMENT
from memhealth.models import LEARNING_STATUSES, Learning

logger = logging.getLogger(__name__)

STATUS_FILE = Path(".claude") / "learnings.json"
SETTABLE_STATUSES = ("pending", "verified", "rejected")

_SESSION_RE = re.compile(r"^## Session (?P<id>[^(]*?)\s*(?:\((?P<date>[^)]*)\))?\s*$")
_LEARNING_RE = re.compile(r"^- \[(?P<category>[^\]]+)\]\s*(?P<rest>.*)$")


def learning_id(session_id: str, content: str) -> str:
    return hashlib.sha256(f"{session_id}:{content}".encode()).hexdigest()[:12]


def parse_learnings(text: str, source_file: str) -> list[Learning]:
    """Parse learning bullets, all in `pending` state."""
    learnings: list[Learning] = []
    seen: set[str] = set()
    session_id = ""
    session_date = ""

    for raw in text.splitlines():
        line = raw.strip()

        header = _SESSION_RE.match(line)
        if header:
            session_id = header.group("id").strip()
            session_date = (header.group("date") or "").strip()
            continue

        match = _LEARNING_RE.match(line)
        if not match:
            continue

        parts = match.group("rest").split("|")
        content = parts[0].strip()
        topic: str | None = None
        confidence = "medium"
        for part in parts[1:]:
            kv = part.strip()
            if kv.startswith("topic:"):
                topic = kv[len("topic:"):].strip() or None
            elif kv.startswith("confidence:"):
                confidence = kv[len("confidence:"):].strip() or confidence

        lid = learning_id(session_id, content)
        if lid in seen:
            continue
        seen.add(lid)
        learnings.append(
            Learning(
                id=lid,
                session_id=session_id,
                category=match.group("category").strip(),
                content=content,
                topic=topic,
                confidence=confidence,
                status="pending",
                source_file=source_file,
                created_at=session_date,
                updated_at=session_date,
            )
        )
    return learnings


class LearningStore:
    """Read learnings and persist their lifecycle status for one project."""

    def __init__(self, project_path: str) -> None:
        self.root = Path(project_path)

    @property
    def local_file(self) -> Path:
        return self.root / LOCAL_DOCUMENT

    @property
    def status_file(self) -> Path:
        return self.root / STATUS_FILE

    # ── Reading ───────────────────────────────────────────────

    def list_learnings(self) -> list[Learning]:
        if not self.local_file.exists():
            return []
        try:
            text = self.local_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Skipping unreadable learnings file %s: %s", self.local_file, e)
            return []
        overlay = self._load_overlay()
        learnings = []
        for learning in parse_learnings(text, str(self.local_file)):
            state = overlay.get(learning.id)
            if state:
                learning = replace(
                    learning,
                    status=state.get("status", learning.status),
                    updated_at=state.get("updated_at", learning.updated_at),
                )
            learnings.append(learning)
        return learnings

    def get(self, id: str) -> Learning:
        for learning in self.list_learnings():
            if learning.id == id:
                return learning
        raise NotFound(f"Learning not found: {id}")

    # ── Status lifecycle ──────────────────────────────────────

    def set_status(self, id: str, status: str) -> Learning:
        """Toggle between pending / verified / rejected."""
        if status not in LEARNING_STATUSES:
            raise InvalidTransition(
                f"Invalid status '{status}'. Must be one of: {', '.join(LEARNING_STATUSES)}"
            )
        if status not in SETTABLE_STATUSES:
            raise InvalidTransition("Use promote_learning to mark a learning as promoted")
        learning = self.get(id)
        if learning.status == "promoted":
            raise InvalidTransition(f"Learning {id} is already promoted")
        return self._write_status(learning, status)

    def promote(self, id: str, target: str) -> Learning:
        """Append the learning to `target` and mark it promoted.

        The target is written before the status. If saving the status fails the
        learning still reads as unpromoted, so PartialWrite is raised: retrying
        would append it a second time.
        """
        learning = self.get(id)
        if learning.status == "promoted":
            raise InvalidTransition(f"Learning {id} is already promoted")
        if learning.status == "rejected":
            raise InvalidTransition(f"Learning {id} was rejected and cannot be promoted")

        target_path = Path(target) if Path(target).is_absolute() else self.root / target
        target_path.parent.mkdir(parents=True, exist_ok=True)
        existing = target_path.read_text(encoding="utf-8") if target_path.exists() else ""
        if existing and not existing.endswith("\n"):
            existing += "\n"
        target_path.write_text(f"{existing}- {learning.content}\n", encoding="utf-8")
        try:
            promoted = self._write_status(learning, "promoted")
        except OSError as e:
            logger.warning(
                "Learning %s appended to %s but its status could not be saved: %s",
                id, target_path, e,
            )
            raise PartialWrite(
                str(target_path), e,
                f"Learning {id} was appended to {target_path} but its status "
                f"could not be saved: {e}",
            ) from e
        logger.info("Promoted learning %s to %s", id, target_path)
        return promoted

    def _write_status(self, learning: Learning, status: str) -> Learning:
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        overlay = self._load_overlay()
        overlay[learning.id] = {"status": status, "updated_at": now}
        self.status_file.parent.mkdir(parents=True, exist_ok=True)
        self.status_file.write_text(
            json.dumps(overlay, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
        return replace(learning, status=status, updated_at=now)

    def _load_overlay(self) -> dict[str, dict]:
        if not self.status_file.exists():
            return {}
        try:
            data = json.loads(self.status_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("Ignoring corrupt learning status file %s: %s", self.status_file, e)
            return {}
        return data if isinstance(data, dict) else {}
