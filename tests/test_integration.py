"""End-to-end tests: MCP tools over real files, SQLite and a fake provider."""
from unittest.mock import MagicMock, patch

import pytest

from bedrock_notes.models.db_models import init_db
from bedrock_notes.server.mcp_server import BedrockMcpServer
from bedrock_notes.services.embedding_service import EmbeddingService
from tests.fakes import FakeEmbeddingProvider


@pytest.fixture
def tools(test_config):
    """Registered tool functions of a server wired to real services."""
    registered = {}
    mock_mcp = MagicMock()

    def mock_tool_decorator(*args, **kwargs):
        def tool_wrapper(func):
            registered[kwargs.get("name")] = func
            return func
        return tool_wrapper
    mock_mcp.tool = mock_tool_decorator

    service = EmbeddingService(embedder=FakeEmbeddingProvider(dim=8))
    with patch("bedrock_notes.server.mcp_server.FastMCP", return_value=mock_mcp), \
            patch("bedrock_notes.server.mcp_server.atexit"), \
            patch.object(BedrockMcpServer, "_create_embedding_service", return_value=service):
        server = BedrockMcpServer(engine=init_db(test_config.get_db_url()), settings=test_config)
    yield registered
    server._shutdown()


def test_open_link_follow_roundtrip(tools):
    assert tools["bedrock_open"](path="alpha").startswith("Note: alpha\n\n# alpha")

    assert tools["bedrock_link"](from_path="alpha", target="beta") == "Linked alpha -> [[beta]]"

    links = tools["bedrock_links"](path="beta")
    assert "## Linked from\n- [[alpha]]\n" in links

    followed = tools["bedrock_follow"](text="jump to [[beta]]")
    assert followed.startswith("Note: beta\n\n# beta")
    assert "[[alpha]]" in followed


def test_similar_excludes_reference(tools):
    tools["bedrock_link"](from_path="alpha", target="beta")
    tools["bedrock_open"](path="gamma")

    result = tools["bedrock_similar"](path="alpha", limit=5)
    lines = result.split("\n")
    assert len(lines) == 2
    assert all(line.endswith((" - beta", " - gamma")) for line in lines)


def test_search_returns_formatted_hits(tools):
    tools["bedrock_open"](path="alpha")
    result = tools["bedrock_search"](query="anything", limit=1)
    assert result.endswith("% - alpha")


def test_reindex_reports_counts(tools):
    tools["bedrock_link"](from_path="alpha", target="beta")
    assert tools["bedrock_reindex"]() == "Reindexed 2 of 2 notes (0 failed)."


def test_errors_become_messages(tools):
    assert tools["bedrock_open"](path="../escape").startswith("Error: ")
    assert tools["bedrock_follow"](text="no marker").startswith("Error: ")
    assert tools["bedrock_similar"](path="ghost").startswith("Error: ")
