"""Common test fixtures for Bedrock Notes."""

import tempfile
from pathlib import Path

import pytest

from bedrock_notes.config import BedrockConfig
from bedrock_notes.models.db_models import init_db
from bedrock_notes.observability import metrics
from bedrock_notes.services.embedding_service import EmbeddingService
from bedrock_notes.services.note_graph import NoteGraph
from bedrock_notes.services.search_service import SearchService
from bedrock_notes.storage.note_files import NoteFiles
from bedrock_notes.storage.vector_store import VectorStore
from tests.fakes import FakeEmbeddingProvider


@pytest.fixture
def temp_dirs():
    """Create temporary directories for notes and database."""
    with tempfile.TemporaryDirectory() as notes_dir:
        with tempfile.TemporaryDirectory() as db_dir:
            yield Path(notes_dir), Path(db_dir)


@pytest.fixture
def test_config(temp_dirs):
    """A config pointing at the temp directories, independent of the environment."""
    notes_dir, db_dir = temp_dirs
    return BedrockConfig(
        notes_dir=notes_dir,
        database_path=db_dir / "test_bedrock.db",
        openai_api_key=None,
        embedding_dim=8,
        async_embedding_refresh=False,
        search_max_results=5,
        min_similarity=None,
    )


@pytest.fixture
def store(test_config):
    """A vector store on a real SQLite file."""
    vector_store = VectorStore(engine=init_db(test_config.get_db_url()))
    yield vector_store
    vector_store.close()


@pytest.fixture
def note_files(test_config):
    return NoteFiles(settings=test_config)


@pytest.fixture
def fake_embedder():
    """8-dimensional deterministic provider."""
    return FakeEmbeddingProvider(dim=8)


@pytest.fixture
def embedding_service(fake_embedder):
    service = EmbeddingService(embedder=fake_embedder)
    yield service
    service.shutdown()


@pytest.fixture
def graph(note_files, store, embedding_service, test_config):
    """A note graph refreshing embeddings inline."""
    note_graph = NoteGraph(
        note_files,
        store,
        embedding_service=embedding_service,
        background=False,
        settings=test_config,
    )
    yield note_graph
    note_graph.wait_for_refreshes()


@pytest.fixture
def search_service(store, embedding_service, note_files, test_config):
    return SearchService(
        store,
        embedding_service=embedding_service,
        note_files=note_files,
        settings=test_config,
    )


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Keep the global metrics collector isolated per test."""
    metrics.reset()
    yield
    metrics.reset()
