"""SQLAlchemy database models for Bedrock Notes."""
import datetime
from typing import Optional

from sqlalchemy import (Column, DateTime, ForeignKey, Integer, LargeBinary,
                        String, Text, create_engine, event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from bedrock_notes.config import config

# Create base class for SQLAlchemy models
Base = declarative_base()


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    path = Column(String(1024), unique=True, nullable=False, index=True)
    content = Column(Text, nullable=False, default="")
    last_modified = Column(DateTime, default=datetime.datetime.now, nullable=False)

    # Relationships
    embedding = relationship(
        "DBEmbedding",
        back_populates="note",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id={self.id}, path='{self.path}')>"


class DBEmbedding(Base):
    """Database model for a note's embedding vector (float32 blob)."""
    __tablename__ = "embeddings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(
        Integer,
        ForeignKey("notes.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    dimension = Column(Integer, nullable=False)
    vector = Column(LargeBinary, nullable=False)

    # Relationships
    note = relationship("DBNote", back_populates="embedding")

    def __repr__(self) -> str:
        """Return string representation of embedding."""
        return f"<Embedding(note_id={self.note_id}, dimension={self.dimension})>"


def init_db(db_url: Optional[str] = None) -> Engine:
    """Create the engine and schema.

    Applies SQLite settings on every connection:
    - foreign_keys=ON so deleting a note cascades to its embedding
    - WAL journal and NORMAL sync for file databases

    An in-memory database lives in a single connection, shared by every
    thread through a static pool.
    """
    url = db_url or config.get_db_url()
    in_memory = url in ("sqlite://", "sqlite:///:memory:")
    if in_memory:
        engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(url)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Optional[Engine] = None):
    """Get a session factory for the database."""
    if engine is None:
        engine = init_db()
    return sessionmaker(bind=engine, expire_on_commit=False)
