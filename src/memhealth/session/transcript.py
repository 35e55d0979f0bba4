"""Session transcript discovery and reading.

Transcripts live in <claude_home>/projects/<project path with "/" as "-">/*.jsonl,
one JSON object per line:
    {"type": "user", "message": {"role": "user", "content": "..." | [blocks]}}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from memhealth.memory.catalog import claude_project_dir

logger = logging.getLogger(__name__)


def find_session_transcript(claude_home: Path, project_path: str) -> Path | None:
    """Most recent transcript for a project, or None."""
    projects_dir = claude_home / "projects"
    if not projects_dir.is_dir():
        return None

    exact = claude_project_dir(claude_home, project_path)
    if exact.is_dir():
        found = _most_recent_jsonl(exact)
        return found[0] if found else None

    # Fall back to folders ending with the project name (project moved or remounted)
    project_name = Path(project_path).name
    if not project_name:
        return None

    best: tuple[Path, float] | None = None
    for folder in projects_dir.iterdir():
        if not folder.is_dir() or not folder.name.endswith(f"-{project_name}"):
            continue
        found = _most_recent_jsonl(folder)
        if found and (best is None or found[1] > best[1]):
            best = found
    return best[0] if best else None


def _most_recent_jsonl(folder: Path) -> tuple[Path, float] | None:
    best: tuple[Path, float] | None = None
    for path in folder.glob("*.jsonl"):
        try:
            mtime = path.stat().st_mtime
        except OSError:
            continue
        if best is None or mtime > best[1]:
            best = (path, mtime)
    return best


def read_recent_messages(
    transcript: Path,
    max_messages: int = 30,
    truncate: int = 800,
) -> list[str]:
    """Render the tail of a transcript as `[role]: text` lines."""
    try:
        lines = transcript.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read transcript %s: %s", transcript, e)
        return []

    # Read twice as many lines as needed; many are tool results or metadata
    start = max(len(lines) - max_messages * 2, 0)
    messages: list[str] = []
    for line in lines[start:]:
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(entry, dict):
            continue
        message = entry.get("message")
        if not isinstance(message, dict):
            continue

        role = message.get("role") or entry.get("type", "")
        text = extract_message_text(message.get("content"))
        if text:
            if len(text) > truncate:
                text = text[:truncate] + "..."
            messages.append(f"[{role}]: {text}")

        if len(messages) >= max_messages:
            break
    return messages


def extract_message_text(content: object) -> str:
    """Human-readable text of a message: plain text and tool names only."""
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""

    texts = []
    for block in content:
        if not isinstance(block, dict):
            continue
        kind = block.get("type")
        if kind == "text" and isinstance(block.get("text"), str):
            texts.append(block["text"])
        elif kind == "tool_use" and block.get("name"):
            texts.append(f"[Used tool: {block['name']}]")
        # tool_result and thinking blocks are too verbose to be useful
    return " ".join(texts)
