"""Data models for Bedrock Notes."""

import datetime
import posixpath
from dataclasses import dataclass
from datetime import timezone
from pathlib import Path, PurePosixPath
from typing import List, NamedTuple, Optional

from pydantic import BaseModel, Field, field_validator

from bedrock_notes.exceptions import BedrockError, ErrorCode, ValidationError
from bedrock_notes.storage.markdown import (
    extract_backlinks,
    extract_forward_links,
    format_marker,
    parse_title,
)


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite drops tzinfo on round-trip, so values read back from the store
    pass through here.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def normalize_note_path(value: str, root: Path, extension: str = ".md") -> str:
    """Normalize any reference to a note into its canonical path.

    The canonical path is POSIX, relative to ``root`` and without the note
    extension, which makes it identical to the note's display path::

        "alpha"                  -> "alpha"
        "alpha.md"               -> "alpha"
        "<root>/projects/b.md"   -> "projects/b"
        "[[projects/b]]"         -> "projects/b"
        "projects\\b"            -> "projects/b"

    Args:
        value: A note path, file path or link marker.
        root: The notes root directory.
        extension: Note file extension to strip.

    Returns:
        The canonical note path.

    Raises:
        ValidationError: If the path is empty, escapes the root, or
            contains parent-directory segments.
    """
    raw = (value or "").strip()
    if raw.startswith("[[") and raw.endswith("]]"):
        raw = raw[2:-2].strip()
    raw = raw.replace("\\", "/")
    if not raw:
        raise ValidationError("Note path cannot be empty", field="path", value=value)

    if raw.startswith("/") or Path(raw).is_absolute():
        try:
            raw = Path(raw).resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            raise ValidationError(
                "Note path is outside the notes directory",
                field="path",
                value=value,
                code=ErrorCode.PATH_TRAVERSAL_DETECTED,
            )

    if extension and raw.endswith(extension):
        raw = raw[: -len(extension)]

    segments = [seg for seg in raw.split("/") if seg not in ("", ".")]
    if ".." in segments:
        raise ValidationError(
            "Note path cannot contain '..' (path traversal)",
            field="path",
            value=value,
            code=ErrorCode.PATH_TRAVERSAL_DETECTED,
        )
    if not segments:
        raise ValidationError("Note path cannot be empty", field="path", value=value)

    return posixpath.join(*segments)


class Note(BaseModel):
    """A uniquely-pathed Markdown note."""

    path: str = Field(..., description="Canonical path relative to the notes root")
    content: str = Field(default="", description="Full Markdown text")
    last_modified: datetime.datetime = Field(default_factory=utc_now)

    model_config = {
        "validate_assignment": True,
    }

    @field_validator("last_modified", mode="before")
    @classmethod
    def _aware_timestamp(cls, value):
        if isinstance(value, datetime.datetime):
            return ensure_timezone_aware(value)
        return value

    @property
    def display_path(self) -> str:
        """Path shown inside link markers (extension already stripped)."""
        return self.path

    @property
    def name(self) -> str:
        """Last path segment."""
        return PurePosixPath(self.path).name

    @property
    def title(self) -> str:
        """First ``# `` heading, falling back to the file name."""
        return parse_title(self.content) or self.name

    @property
    def marker(self) -> str:
        """The ``[[...]]`` marker other notes use to link here."""
        return format_marker(self.path)

    @property
    def forward_links(self) -> List[str]:
        """Paths this note links to, in order of first appearance."""
        return extract_forward_links(self.content)

    @property
    def backlinks(self) -> List[str]:
        """Paths listed under this note's ``## Linked From`` section."""
        return extract_backlinks(self.content)


class SimilarityResult(NamedTuple):
    """A ranked search hit; compares equal to a ``(path, similarity)`` tuple."""

    path: str
    similarity: float


@dataclass
class EmbeddingRefresh:
    """Outcome of refreshing one note's embedding."""

    path: str
    ok: bool
    error: Optional[BedrockError] = None
