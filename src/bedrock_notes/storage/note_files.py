"""Note files on disk.

Each note is a Markdown file under the notes root; the file is the source of
truth for the note's text. The vector store only mirrors the text it last
embedded.
"""
import datetime
import logging
import os
from datetime import timezone
from glob import escape as glob_escape
from pathlib import Path
from typing import List, Optional, Tuple

from bedrock_notes.config import BedrockConfig, config as default_config
from bedrock_notes.exceptions import ErrorCode, NoteNotFoundError, StorageError
from bedrock_notes.models.schema import Note, normalize_note_path

logger = logging.getLogger(__name__)


class NoteFiles:
    """Reads, writes and discovers note files under a root directory."""

    def __init__(
        self,
        root: Optional[Path] = None,
        extension: Optional[str] = None,
        header: Optional[str] = None,
        footer: Optional[str] = None,
        settings: Optional[BedrockConfig] = None,
    ):
        """Initialize from explicit arguments, falling back to ``settings``.

        Args:
            root: Notes root directory. Created if missing.
            extension: Note file extension, e.g. ``.md``.
            header: Template prepended to new notes; ``{title}`` is replaced.
            footer: Template appended to new notes.
            settings: Configuration used for anything not passed explicitly.
        """
        settings = settings or default_config
        self.root = Path(root).expanduser().resolve() if root else settings.get_notes_dir()
        self.root.mkdir(parents=True, exist_ok=True)
        self.extension = extension or settings.default_extension
        self.header = header if header is not None else settings.note_header
        self.footer = footer if footer is not None else settings.note_footer

    def normalize(self, value: str) -> str:
        """Canonical note path for a path, file path or marker."""
        return normalize_note_path(value, self.root, self.extension)

    def file_path(self, path: str) -> Path:
        """Absolute file location of a canonical note path."""
        return self.root / f"{path}{self.extension}"

    def exists(self, path: str) -> bool:
        return self.file_path(path).is_file()

    def template(self, path: str) -> str:
        """Initial text of a new note."""
        title = path.rsplit("/", 1)[-1]
        return self.header.replace("{title}", title) + self.footer

    def read(self, path: str) -> Note:
        """Load a note from disk.

        Raises:
            NoteNotFoundError: If the file does not exist.
            StorageError: If the file cannot be read or decoded.
        """
        file_path = self.file_path(path)
        if not file_path.is_file():
            raise NoteNotFoundError(path)
        try:
            content = file_path.read_text(encoding="utf-8")
            mtime = file_path.stat().st_mtime
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(
                f"Failed to read note '{path}'",
                operation="read",
                path=path,
                code=ErrorCode.STORAGE_READ_FAILED,
                original_error=e,
            )
        return Note(
            path=path,
            content=content,
            last_modified=datetime.datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def write(self, path: str, content: str) -> Note:
        """Write note text atomically (temp file, then rename).

        Raises:
            StorageError: If the file cannot be written.
        """
        file_path = self.file_path(path)
        temp_path = file_path.with_name(f".{file_path.name}.tmp")
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(content, encoding="utf-8")
            os.replace(temp_path, file_path)
        except OSError as e:
            try:
                temp_path.unlink()
            except OSError:
                pass
            raise StorageError(
                f"Failed to write note '{path}'",
                operation="write",
                path=path,
                code=ErrorCode.STORAGE_WRITE_FAILED,
                original_error=e,
            )
        return self.read(path)

    def create(self, path: str) -> Tuple[Note, bool]:
        """Create a note from the template unless it already exists.

        Returns:
            Tuple of (note, whether it was created).
        """
        if self.exists(path):
            return self.read(path), False
        note = self.write(path, self.template(path))
        logger.info(f"Created note {path}")
        return note, True

    def delete(self, path: str) -> None:
        """Remove a note file.

        Raises:
            NoteNotFoundError: If the file does not exist.
        """
        file_path = self.file_path(path)
        if not file_path.is_file():
            raise NoteNotFoundError(path)
        try:
            file_path.unlink()
        except OSError as e:
            raise StorageError(
                f"Failed to delete note '{path}'",
                operation="delete",
                path=path,
                code=ErrorCode.STORAGE_DELETE_FAILED,
                original_error=e,
            )

    def _to_note_path(self, file_path: Path) -> str:
        relative = file_path.relative_to(self.root).as_posix()
        return relative[: -len(self.extension)]

    def list_paths(self) -> List[str]:
        """Every note path under the root, sorted. Hidden entries are skipped."""
        paths = []
        for file_path in self.root.rglob(f"*{self.extension}"):
            relative = file_path.relative_to(self.root)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if file_path.is_file():
                paths.append(self._to_note_path(file_path))
        return sorted(paths)

    def glob(self, query: str) -> List[str]:
        """Note paths whose file name starts with ``query`` (``**/<query>*``)."""
        pattern = f"{glob_escape(query)}*{self.extension}"
        matches = set()
        for file_path in self.root.glob(f"**/{pattern}"):
            relative = file_path.relative_to(self.root)
            if any(part.startswith(".") for part in relative.parts):
                continue
            if file_path.is_file():
                matches.add(self._to_note_path(file_path))
        return sorted(matches)
