"""Persistent store for note content and embedding vectors.

Two related tables, ``notes`` (unique path, content, last-modified) and
``embeddings`` (one float32 vector per note, cascade-deleted with it), kept
in SQLite through SQLAlchemy. Every write for a single note runs in one
transaction under a process-local lock, so a reader never sees new content
paired with a stale vector written by the same call. Reads take the same
lock because an in-memory database shares one connection across threads.
"""
import datetime
import logging
import threading
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bedrock_notes.exceptions import (
    EmbeddingNotFoundError,
    ErrorCode,
    NoteNotFoundError,
    StorageError,
)
from bedrock_notes.models.db_models import (
    DBEmbedding,
    DBNote,
    get_session_factory,
    init_db,
)
from bedrock_notes.models.schema import Note, ensure_timezone_aware

logger = logging.getLogger(__name__)


def _to_blob(embedding: Sequence[float]) -> Tuple[bytes, int]:
    vector = np.asarray(embedding, dtype=np.float32).ravel()
    return vector.tobytes(), int(vector.shape[0])


def _from_blob(blob: bytes, dimension: int) -> np.ndarray:
    vector = np.frombuffer(blob, dtype=np.float32)
    if vector.shape[0] != dimension:
        logger.warning(
            f"Stored vector has {vector.shape[0]} components, expected {dimension}"
        )
    # frombuffer returns a read-only view over the blob
    return vector.copy()


class VectorStore:
    """Notes and their embeddings, keyed by canonical note path."""

    def __init__(self, engine: Optional[Any] = None, db_url: Optional[str] = None):
        """Initialize the store.

        Args:
            engine: Pre-configured SQLAlchemy engine. When omitted, one is
                created with ``init_db(db_url)``.
            db_url: Database URL, used only when ``engine`` is None.
        """
        self.engine = engine if engine is not None else init_db(db_url)
        self.session_factory = get_session_factory(self.engine)
        self._lock = threading.RLock()

    def close(self) -> None:
        """Dispose of pooled connections."""
        self.engine.dispose()

    @staticmethod
    def _find(session: Session, path: str) -> Optional[DBNote]:
        return session.scalar(select(DBNote).where(DBNote.path == path))

    def upsert(
        self,
        path: str,
        content: str,
        timestamp: datetime.datetime,
        embedding: Optional[Sequence[float]] = None,
    ) -> None:
        """Insert or update a note and its embedding atomically.

        Args:
            path: Canonical note path.
            content: Note text as it was embedded.
            timestamp: Last-modified time of that text.
            embedding: Vector for ``content``. When None only the note row is
                written and any existing vector is left in place.

        Raises:
            StorageError: If the transaction fails; nothing is written.
        """
        blob = _to_blob(embedding) if embedding is not None else None
        with self._lock:
            try:
                with self.session_factory() as session, session.begin():
                    db_note = self._find(session, path)
                    if db_note is None:
                        db_note = DBNote(path=path, content=content, last_modified=timestamp)
                        session.add(db_note)
                        session.flush()
                    else:
                        db_note.content = content
                        db_note.last_modified = timestamp

                    if blob is not None:
                        data, dimension = blob
                        db_embedding = session.scalar(
                            select(DBEmbedding).where(DBEmbedding.note_id == db_note.id)
                        )
                        if db_embedding is None:
                            session.add(
                                DBEmbedding(note_id=db_note.id, dimension=dimension, vector=data)
                            )
                        else:
                            db_embedding.dimension = dimension
                            db_embedding.vector = data
            except SQLAlchemyError as e:
                raise StorageError(
                    f"Failed to store note '{path}'",
                    operation="upsert",
                    path=path,
                    code=ErrorCode.STORAGE_WRITE_FAILED,
                    original_error=e,
                )
        logger.debug(f"Upserted note {path} (embedding={'yes' if blob else 'no'})")

    def get_note(self, path: str) -> Optional[Note]:
        """Return the stored note, or None."""
        try:
            with self._lock, self.session_factory() as session:
                db_note = self._find(session, path)
                if db_note is None:
                    return None
                return Note(
                    path=db_note.path,
                    content=db_note.content,
                    last_modified=ensure_timezone_aware(db_note.last_modified),
                )
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to read note '{path}'", operation="get_note", path=path, original_error=e
            )

    def has_note(self, path: str) -> bool:
        """Whether a note row exists for ``path``."""
        return self.get_note(path) is not None

    def get_embedding(self, path: str) -> np.ndarray:
        """Return the stored vector for a note.

        Raises:
            NoteNotFoundError: If no note row exists.
            EmbeddingNotFoundError: If the note was never embedded.
        """
        try:
            with self._lock, self.session_factory() as session:
                db_note = self._find(session, path)
                if db_note is None:
                    raise NoteNotFoundError(path)
                db_embedding = db_note.embedding
                if db_embedding is None:
                    raise EmbeddingNotFoundError(path)
                return _from_blob(db_embedding.vector, db_embedding.dimension)
        except SQLAlchemyError as e:
            raise StorageError(
                f"Failed to read embedding for '{path}'",
                operation="get_embedding",
                path=path,
                original_error=e,
            )

    def all_embeddings(
        self, exclude_path: Optional[str] = None
    ) -> List[Tuple[str, np.ndarray]]:
        """Return every ``(path, vector)`` pair in note insertion order.

        Args:
            exclude_path: Optional path to leave out (a note searching for
                its own neighbours).
        """
        query = (
            select(DBNote.path, DBEmbedding.vector, DBEmbedding.dimension)
            .join(DBEmbedding, DBEmbedding.note_id == DBNote.id)
            .order_by(DBNote.id)
        )
        if exclude_path is not None:
            query = query.where(DBNote.path != exclude_path)
        try:
            with self._lock, self.session_factory() as session:
                rows = session.execute(query).all()
        except SQLAlchemyError as e:
            raise StorageError(
                "Failed to load embeddings", operation="all_embeddings", original_error=e
            )
        return [(path, _from_blob(blob, dim)) for path, blob, dim in rows]

    def delete(self, path: str) -> None:
        """Delete a note; its embedding goes with it.

        Raises:
            NoteNotFoundError: If no note row exists.
        """
        with self._lock:
            try:
                with self.session_factory() as session, session.begin():
                    db_note = self._find(session, path)
                    if db_note is None:
                        raise NoteNotFoundError(path)
                    session.delete(db_note)
            except SQLAlchemyError as e:
                raise StorageError(
                    f"Failed to delete note '{path}'",
                    operation="delete",
                    path=path,
                    code=ErrorCode.STORAGE_DELETE_FAILED,
                    original_error=e,
                )
        logger.debug(f"Deleted note {path}")

    def count_notes(self) -> int:
        """Number of note rows."""
        with self._lock, self.session_factory() as session:
            return session.scalar(select(func.count()).select_from(DBNote)) or 0

    def count_embeddings(self) -> int:
        """Number of stored vectors."""
        with self._lock, self.session_factory() as session:
            return session.scalar(select(func.count()).select_from(DBEmbedding)) or 0

    def clear_embeddings(self) -> int:
        """Drop every stored vector, keeping note rows. Returns rows removed."""
        with self._lock:
            try:
                with self.session_factory() as session, session.begin():
                    result = session.execute(delete(DBEmbedding))
                    cleared = result.rowcount or 0
            except SQLAlchemyError as e:
                raise StorageError(
                    "Failed to clear embeddings",
                    operation="clear_embeddings",
                    code=ErrorCode.STORAGE_DELETE_FAILED,
                    original_error=e,
                )
        logger.info(f"Cleared {cleared} embeddings")
        return cleared
