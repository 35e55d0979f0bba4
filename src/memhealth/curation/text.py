"""Line-addressed text splicing. Pure functions, no I/O.

Line numbers are 1-based, matching the numbers reported by document analysis.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from memhealth.errors import InvalidRange


def split_lines(content: str) -> list[str]:
    """Split a document body on newlines. A trailing newline yields a final empty line."""
    return content.split("\n")


def join_lines(lines: Sequence[str]) -> str:
    return "\n".join(lines)


def document_lines(content: str) -> list[str]:
    """Lines as the editor numbers them, without the empty tail after a final newline.

    Only "\\n" separates lines, so numbers agree with `split_lines`.
    """
    lines = split_lines(content)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def remove_lines(body: Sequence[str], line_numbers: Iterable[int]) -> list[str]:
    """Drop every line whose 1-based index is in `line_numbers`.

    Numbers outside the document are ignored.
    """
    to_remove = set(line_numbers)
    return [line for i, line in enumerate(body, start=1) if i not in to_remove]


def extract_range(body: Sequence[str], start: int, end: int) -> tuple[list[str], str]:
    """Cut lines `start..end` (inclusive) out of `body`.

    Returns `(remainder, extracted)` where `extracted` is the joined slice with a
    trailing newline. Raises InvalidRange unless 1 <= start <= end <= len(body).
    """
    if not 1 <= start <= end <= len(body):
        raise InvalidRange(start, end, len(body))
    extracted = join_lines(body[start - 1 : end]) + "\n"
    remainder = list(body[: start - 1]) + list(body[end:])
    return remainder, extracted
