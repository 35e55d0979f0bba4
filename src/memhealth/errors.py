"""Error taxonomy shared by the curation engine and its backends."""

from __future__ import annotations


class MemhealthError(Exception):
    """Base class for all engine errors."""


class NotFound(MemhealthError):
    """Project path, document, transcript or learning does not exist."""


class Unavailable(MemhealthError):
    """AI backend is not configured (no credentials)."""


class RateLimited(MemhealthError):
    """AI backend refused the call for now."""


class Unreachable(MemhealthError):
    """AI backend could not be reached (connection error or timeout)."""


class MalformedResponse(MemhealthError):
    """AI backend answered, but the reply could not be parsed."""


class InvalidRange(MemhealthError, ValueError):
    """Remediation line bounds are not valid against the current document."""

    def __init__(self, start: int, end: int, line_count: int) -> None:
        super().__init__(
            f"Line range {start}-{end} is invalid for a document of {line_count} lines"
        )
        self.start = start
        self.end = end
        self.line_count = line_count


class PartialWrite(MemhealthError):
    """Content was appended to a target file but the follow-up write failed.

    For a move, the extracted text now exists in both places; for a promotion,
    the learning is in the target but not marked promoted. Retrying risks a
    double append.
    """

    def __init__(
        self, target_file: str, cause: BaseException, message: str | None = None
    ) -> None:
        super().__init__(
            message
            or f"Content was appended to {target_file} but the primary document "
            f"could not be rewritten: {cause}"
        )
        self.target_file = target_file
        self.cause = cause


class InvalidTarget(MemhealthError, ValueError):
    """Append target resolves outside the project directory."""


class CurationBusy(MemhealthError):
    """A curation operation is already in flight for this document."""


class InvalidTransition(MemhealthError, ValueError):
    """Learning status change not allowed by the lifecycle."""
