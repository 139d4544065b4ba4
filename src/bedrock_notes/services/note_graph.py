"""Note graph manager: note existence, wiki links and materialized backlinks.

Link state lives in note text only. ``[[path]]`` markers in a note body are
its forward links; the target's ``## Linked From`` section lists the notes
that link to it. Every mutation writes the file first and then refreshes the
note's embedding, so a failed or abandoned refresh never loses text.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Set, Tuple

from bedrock_notes.config import BedrockConfig, config as default_config
from bedrock_notes.exceptions import (
    BedrockError,
    ConfigError,
    ErrorCode,
    LinkError,
    NoteNotFoundError,
    ProviderError,
    StorageError,
)
from bedrock_notes.models.schema import EmbeddingRefresh, Note
from bedrock_notes.observability import timed_operation
from bedrock_notes.storage.markdown import (
    add_backlink_entry,
    find_marker,
    format_marker,
    insert_marker,
)

if TYPE_CHECKING:
    from bedrock_notes.services.embedding_service import EmbeddingService
    from bedrock_notes.storage.note_files import NoteFiles
    from bedrock_notes.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)

EmbeddingErrorCallback = Callable[[str, BedrockError], None]

# Failures that leave the text committed and the embedding pending
_REFRESH_ERRORS = (ConfigError, ProviderError, StorageError)


class NoteGraph:
    """Creates notes, links them, and keeps their embeddings current."""

    def __init__(
        self,
        note_files: NoteFiles,
        store: VectorStore,
        embedding_service: Optional[EmbeddingService] = None,
        background: Optional[bool] = None,
        on_embedding_error: Optional[EmbeddingErrorCallback] = None,
        settings: Optional[BedrockConfig] = None,
    ):
        """Initialize the graph manager.

        Args:
            note_files: Note file access under the notes root.
            store: Vector store mirroring note text and embeddings.
            embedding_service: Produces vectors. Without one every refresh
                fails with ConfigError and the note stays pending.
            background: Run refreshes on a single background worker.
                Defaults to ``settings.async_embedding_refresh``.
            on_embedding_error: Called with ``(path, error)`` whenever a
                refresh fails.
            settings: Configuration for anything not passed explicitly.
        """
        settings = settings or default_config
        self.note_files = note_files
        self.store = store
        self._embedding_service = embedding_service
        self._on_embedding_error = on_embedding_error
        if background is None:
            background = settings.async_embedding_refresh

        # One worker keeps refreshes in submission order
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="bedrock-embed")
            if background
            else None
        )
        self._futures: List[Future] = []
        self._pending: Set[str] = set()
        # Paths submitted to the worker whose refresh has not started yet
        self._queued: Set[str] = set()
        self._lock = threading.Lock()

    # =========================================================================
    # Embedding refresh
    # =========================================================================

    @property
    def pending_embeddings(self) -> List[str]:
        """Notes whose latest text has not been embedded yet."""
        with self._lock:
            return sorted(self._pending)

    def _mark_pending(self, path: str, pending: bool) -> None:
        with self._lock:
            if pending:
                self._pending.add(path)
            else:
                self._pending.discard(path)

    def _report_failure(self, path: str, error: BedrockError) -> None:
        logger.warning(f"Embedding refresh failed for {path}: {error}")
        self._mark_pending(path, True)
        if self._on_embedding_error is not None:
            try:
                self._on_embedding_error(path, error)
            except Exception as e:
                logger.error(f"on_embedding_error callback raised for {path}: {e}")

    def refresh_embedding(self, path: str) -> EmbeddingRefresh:
        """Re-read a note from disk, embed it and store text plus vector.

        Refresh failures are reported, never raised.
        """
        path = self.note_files.normalize(path)
        try:
            note = self.note_files.read(path)
        except NoteNotFoundError as e:
            # Deleted before a queued refresh ran; nothing left to embed
            logger.warning(f"Skipping embedding refresh for missing note {path}")
            self._mark_pending(path, False)
            return EmbeddingRefresh(path=path, ok=False, error=e)
        except StorageError as e:
            self._report_failure(path, e)
            return EmbeddingRefresh(path=path, ok=False, error=e)

        try:
            if self._embedding_service is None:
                raise ConfigError(
                    "No embedding service configured", config_key="embedding"
                )
            vector = self._embedding_service.embed(note.content)
            self.store.upsert(path, note.content, note.last_modified, vector)
        except _REFRESH_ERRORS as e:
            self._report_failure(path, e)
            return EmbeddingRefresh(path=path, ok=False, error=e)

        self._mark_pending(path, False)
        logger.debug(f"Refreshed embedding for {path}")
        return EmbeddingRefresh(path=path, ok=True)

    def _run_queued_refresh(self, path: str) -> EmbeddingRefresh:
        with self._lock:
            self._queued.discard(path)
        return self.refresh_embedding(path)

    def _schedule_refresh(self, path: str) -> None:
        if self._executor is None:
            self.refresh_embedding(path)
            return
        with self._lock:
            # A queued refresh reads the file when it starts, so it will
            # pick up this change too
            if path in self._queued:
                logger.debug(f"Refresh for {path} already queued")
                return
            self._queued.add(path)
            self._futures = [f for f in self._futures if not f.done()]
            self._futures.append(self._executor.submit(self._run_queued_refresh, path))

    def wait_for_refreshes(self, timeout: Optional[float] = None) -> bool:
        """Block until queued refreshes finish. Returns False on timeout."""
        with self._lock:
            futures = list(self._futures)
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        """Finish queued refreshes and release the embedding service."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        if self._embedding_service is not None:
            self._embedding_service.shutdown()
        logger.info("Note graph shut down")

    # =========================================================================
    # Notes
    # =========================================================================

    def _ensure(self, path: str) -> Note:
        note, created = self.note_files.create(path)
        with self._lock:
            stale = path in self._pending
        # A note that exists on disk but was never indexed gets embedded too
        if created or stale or not self.store.has_note(path):
            self._schedule_refresh(path)
        return note

    def ensure_exists(self, path: str) -> Note:
        """Create the note from the template if it does not exist.

        Idempotent: an existing note is returned unchanged.
        """
        return self._ensure(self.note_files.normalize(path))

    def open_or_create(self, path: str) -> Note:
        """Return the note at ``path``, creating it first when absent."""
        with timed_operation("open_or_create", path=path):
            return self.ensure_exists(path)

    def read_note(self, path: str) -> Note:
        """Load a note from disk.

        Raises:
            NoteNotFoundError: If the note does not exist.
        """
        return self.note_files.read(self.note_files.normalize(path))

    def list_notes(self) -> List[str]:
        """Every note path, sorted."""
        return self.note_files.list_paths()

    def forward_links(self, path: str) -> List[str]:
        return self.read_note(path).forward_links

    def backlinks(self, path: str) -> List[str]:
        return self.read_note(path).backlinks

    def delete_note(self, path: str) -> None:
        """Remove a note file and its stored row (the embedding cascades).

        Backlink entries in other notes are left as they are.

        Raises:
            NoteNotFoundError: If the note file does not exist.
        """
        path = self.note_files.normalize(path)
        self.note_files.delete(path)
        if self.store.has_note(path):
            self.store.delete(path)
        self._mark_pending(path, False)
        logger.info(f"Deleted note {path}")

    # =========================================================================
    # Links
    # =========================================================================

    def add_backlink(self, target_path: str, source_path: str) -> bool:
        """Record ``source_path`` in ``target_path``'s backlink section.

        The newest backlink goes directly under the header. Adding a
        backlink that is already listed changes nothing.

        Returns:
            True if the target note was modified.
        """
        target = self.note_files.normalize(target_path)
        source = self.note_files.normalize(source_path)
        note = self._ensure(target)

        content, added = add_backlink_entry(note.content, format_marker(source))
        if not added:
            logger.debug(f"Backlink {source} -> {target} already present")
            return False

        self.note_files.write(target, content)
        self._schedule_refresh(target)
        return True

    def add_link(
        self,
        from_path: str,
        to_path: str,
        position: Optional[Tuple[int, int]] = None,
    ) -> str:
        """Link ``from_path`` to ``to_path`` and backlink the reverse.

        Both notes are created when missing. The marker goes at
        ``position`` (0-based line and column) when given, otherwise on its
        own line at the end of the body.

        Returns:
            The inserted marker.

        Raises:
            ValidationError: If a path is invalid.
            LinkError: If the position is negative.
        """
        source = self.note_files.normalize(from_path)
        target = self.note_files.normalize(to_path)
        marker = format_marker(target)

        with timed_operation("add_link", source=source, target=target):
            note = self._ensure(source)
            self._ensure(target)

            try:
                content = insert_marker(note.content, marker, position)
            except ValueError as e:
                raise LinkError(str(e), source=source, target=target)
            self.note_files.write(source, content)
            self._schedule_refresh(source)

            self.add_backlink(target, source)
        logger.info(f"Linked {source} -> {target}")
        return marker

    def resolve_target(self, query: str) -> str:
        """Turn a picker query or selection into a note path.

        An exact note wins; otherwise the first note (sorted) whose file
        name starts with the query; otherwise the query itself, as a new
        note.
        """
        marked = find_marker(query)
        path = self.note_files.normalize(marked if marked is not None else query.strip())
        if self.note_files.exists(path):
            return path
        matches = self.note_files.glob(path)
        if matches:
            return matches[0]
        return path

    def create_link(
        self,
        from_path: str,
        query_or_selection: str,
        position: Optional[Tuple[int, int]] = None,
    ) -> str:
        """Resolve a target from a query and link to it.

        Returns:
            The resolved target path.
        """
        target = self.resolve_target(query_or_selection)
        self.add_link(from_path, target, position)
        return target

    def follow(self, marker_text: str) -> str:
        """Resolve the first marker in a line of text, creating its note.

        Raises:
            LinkError: If the text contains no marker.
        """
        target = find_marker(marker_text)
        if target is None:
            raise LinkError(
                "No link marker found in text", code=ErrorCode.LINK_NOT_FOUND
            )
        path = self.note_files.normalize(target)
        self._ensure(path)
        return path

    # =========================================================================
    # Maintenance
    # =========================================================================

    def reindex(self) -> Dict[str, int]:
        """Re-embed every note file synchronously.

        Returns:
            Dict with keys: total, indexed, failed.
        """
        self.wait_for_refreshes()
        stats = {"total": 0, "indexed": 0, "failed": 0}
        with timed_operation("reindex") as op:
            for path in self.note_files.list_paths():
                stats["total"] += 1
                if self.refresh_embedding(path).ok:
                    stats["indexed"] += 1
                else:
                    stats["failed"] += 1
            op.update(stats)
        logger.info(
            f"Reindex complete: {stats['indexed']} indexed, "
            f"{stats['failed']} failed out of {stats['total']} notes"
        )
        return stats
