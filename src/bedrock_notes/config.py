"""Configuration module for Bedrock Notes."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from bedrock_notes import __version__

# Project-root .env first, then the user-level one next to the notes.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

_USER_ENV = Path.home() / ".bedrock" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

BACKLINK_HEADER = "## Linked From"


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_api_key() -> Optional[str]:
    return os.getenv("BEDROCK_OPENAI_API_KEY") or os.getenv("OPENAI_API_KEY") or None


def _env_min_similarity() -> Optional[float]:
    raw = os.getenv("BEDROCK_MIN_SIMILARITY")
    return float(raw) if raw else None


class BedrockConfig(BaseModel):
    """Configuration for the note store, the embedding provider and search."""

    # Storage configuration
    notes_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("BEDROCK_NOTES_DIR", str(Path.home() / "bedrock"))
        ).expanduser()
    )
    # Relative paths are resolved against notes_dir
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("BEDROCK_DATABASE_PATH", ".bedrock.db")
        ).expanduser()
    )
    default_extension: str = Field(
        default_factory=lambda: os.getenv("BEDROCK_EXTENSION", ".md")
    )
    # Template for new notes; {title} is the last path segment
    note_header: str = Field(default="# {title}\n\n")
    note_footer: str = Field(default=f"\n{BACKLINK_HEADER}\n")

    # Embedding provider configuration
    openai_api_key: Optional[str] = Field(default_factory=_env_api_key, repr=False)
    embedding_model: str = Field(
        default_factory=lambda: os.getenv(
            "BEDROCK_EMBEDDING_MODEL", "text-embedding-3-small"
        )
    )
    embedding_dim: int = Field(
        default_factory=lambda: int(os.getenv("BEDROCK_EMBEDDING_DIM", "1536"))
    )
    embedding_api_base: str = Field(
        default_factory=lambda: os.getenv(
            "BEDROCK_EMBEDDING_API_BASE", "https://api.openai.com/v1"
        )
    )
    embedding_timeout: float = Field(
        default_factory=lambda: float(os.getenv("BEDROCK_EMBEDDING_TIMEOUT", "30"))
    )
    # Run embedding refreshes on a background worker instead of inline
    async_embedding_refresh: bool = Field(
        default_factory=lambda: _env_flag("BEDROCK_ASYNC_EMBEDDINGS", "true")
    )

    # Search configuration
    search_max_results: int = Field(
        default_factory=lambda: int(os.getenv("BEDROCK_SEARCH_MAX_RESULTS", "5"))
    )
    min_similarity: Optional[float] = Field(default_factory=_env_min_similarity)

    # Server configuration
    server_name: str = Field(default=os.getenv("BEDROCK_SERVER_NAME", "bedrock-notes"))
    server_version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate(self) -> "BedrockConfig":
        """Reject settings the engine cannot work with."""
        if self.embedding_dim < 1:
            raise ValueError("embedding_dim must be >= 1")
        if self.search_max_results < 1:
            raise ValueError("search_max_results must be >= 1")
        if not self.default_extension.startswith("."):
            raise ValueError("default_extension must start with '.'")
        if self.min_similarity is not None and not -1.0 <= self.min_similarity <= 1.0:
            raise ValueError("min_similarity must be within [-1, 1]")
        if "{title}" not in self.note_header:
            logger.warning("note_header has no {title} placeholder; new notes get no title")
        return self

    def get_notes_dir(self) -> Path:
        """Absolute notes root, created on first use."""
        notes_dir = self.notes_dir.expanduser().resolve()
        notes_dir.mkdir(parents=True, exist_ok=True)
        return notes_dir

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on notes_dir."""
        if path.is_absolute():
            return path
        return self.get_notes_dir() / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"


# Create a global config instance
config = BedrockConfig()
