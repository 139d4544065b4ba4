"""MCP server implementation for Bedrock Notes."""

import atexit
import logging
import uuid
from typing import Optional

from mcp.server.fastmcp import FastMCP

from bedrock_notes.config import BedrockConfig, config as default_config
from bedrock_notes.exceptions import BedrockError, NotFoundError
from bedrock_notes.observability import metrics, timed_operation
from bedrock_notes.services.embedding_service import EmbeddingService
from bedrock_notes.services.note_graph import NoteGraph
from bedrock_notes.services.openai_provider import OpenAIEmbeddingProvider
from bedrock_notes.services.search_service import SearchService, format_result
from bedrock_notes.storage.note_files import NoteFiles
from bedrock_notes.storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


class BedrockMcpServer:
    """MCP server exposing note creation, linking and semantic search."""

    def __init__(self, engine=None, settings: Optional[BedrockConfig] = None):
        """Initialize the MCP server.

        Args:
            engine: Pre-configured SQLAlchemy engine shared by the store.
                When None the store creates its own from the configured
                database path.
            settings: Configuration; the module-level config by default.
        """
        self.settings = settings or default_config
        self.mcp = FastMCP(self.settings.server_name)

        embedding_service = self._create_embedding_service(self.settings)
        self.note_files = NoteFiles(settings=self.settings)
        self.store = VectorStore(
            engine=engine,
            db_url=None if engine is not None else self.settings.get_db_url(),
        )
        self.graph = NoteGraph(
            self.note_files,
            self.store,
            embedding_service=embedding_service,
            settings=self.settings,
        )
        self.search_service = SearchService(
            self.store,
            embedding_service=embedding_service,
            note_files=self.note_files,
            settings=self.settings,
        )
        logger.info(f"Bedrock MCP server initialized (notes: {self.note_files.root})")
        atexit.register(self._shutdown)
        self._register_tools()

    def _shutdown(self) -> None:
        """Clean up resources on server exit."""
        self.graph.shutdown()
        self.store.close()
        summary = metrics.get_summary()
        logger.info(
            f"Server stopped after {summary['total_operations']} operations "
            f"({summary['total_errors']} errors)"
        )

    @staticmethod
    def _create_embedding_service(settings: BedrockConfig) -> Optional[EmbeddingService]:
        """Create the embedding service, or None when no API key is set.

        Without a key notes are still created and linked; their embeddings
        stay pending and text search reports a configuration error.
        """
        provider = OpenAIEmbeddingProvider(settings=settings)
        if not provider.has_credentials:
            logger.warning(
                "No embedding API key configured (set OPENAI_API_KEY); "
                "semantic search is unavailable"
            )
            return None
        service = EmbeddingService(embedder=provider)
        logger.info(
            f"Embedding service created (model={provider.model}, dim={service.dimension})"
        )
        return service

    def format_error_response(self, error: Exception) -> str:
        """Format an error response in a consistent way.

        Args:
            error: The exception that occurred

        Returns:
            Formatted error message with appropriate level of detail
        """
        error_id = str(uuid.uuid4())[:8]

        if isinstance(error, BedrockError):
            logger.error(
                f"[{error.code.name}] [{error_id}]: {error.message}",
                extra={"error_details": error.details},
            )
            return f"Error: {error.message}"
        elif isinstance(error, ValueError):
            logger.error(f"Validation error [{error_id}]: {str(error)}")
            return f"Error: Invalid input (ref: {error_id})"
        elif isinstance(error, OSError):
            logger.error(f"File system error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: A file system error occurred (ref: {error_id})"
        else:
            logger.error(f"Unexpected error [{error_id}]: {str(error)}", exc_info=True)
            return f"Error: An unexpected error occurred (ref: {error_id})"

    def _format_results(self, results, empty_message: str) -> str:
        if not results:
            return empty_message
        return "\n".join(format_result(result) for result in results)

    def _register_tools(self) -> None:
        """Register MCP tools."""

        @self.mcp.tool(name="bedrock_open")
        def bedrock_open(path: str) -> str:
            """Open a note, creating it when it does not exist.
            Args:
                path: Note path relative to the notes directory, e.g. "projects/alpha"
            """
            with timed_operation("bedrock_open", path=path[:50]):
                try:
                    note = self.graph.open_or_create(path)
                    return f"Note: {note.path}\n\n{note.content}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="bedrock_link")
        def bedrock_link(
            from_path: str,
            target: str,
            line: Optional[int] = None,
            column: Optional[int] = None,
        ) -> str:
            """Link one note to another and record the backlink.
            Args:
                from_path: The note that gets the [[link]] marker
                target: Target note path, a file name prefix to search for, or a [[marker]]
                line: Optional 0-based line for the marker (requires column)
                column: Optional 0-based column for the marker (requires line)
            """
            with timed_operation("bedrock_link", source=from_path[:50]) as op:
                try:
                    if (line is None) != (column is None):
                        return "Error: line and column must be given together."
                    position = (line, column) if line is not None else None
                    resolved = self.graph.create_link(from_path, target, position)
                    op["target"] = resolved
                    return f"Linked {from_path} -> [[{resolved}]]"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="bedrock_follow")
        def bedrock_follow(text: str) -> str:
            """Follow the first [[link]] in a line of text, creating the note if needed.
            Args:
                text: A line containing a [[link]] marker
            """
            with timed_operation("bedrock_follow"):
                try:
                    path = self.graph.follow(text)
                    note = self.graph.read_note(path)
                    return f"Note: {note.path}\n\n{note.content}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="bedrock_search")
        def bedrock_search(query: str, limit: Optional[int] = None) -> str:
            """Find notes semantically similar to a free-text query.
            Args:
                query: Text to search for
                limit: Maximum number of results (default from configuration)
            """
            with timed_operation("bedrock_search", query=query[:30]) as op:
                try:
                    results = self.search_service.search_by_text(query, limit)
                    op["result_count"] = len(results)
                    return self._format_results(results, "No matching notes found.")
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="bedrock_similar")
        def bedrock_similar(path: str, limit: Optional[int] = None) -> str:
            """Find notes similar to an existing note (the note itself is excluded).
            Args:
                path: Path of the reference note
                limit: Maximum number of results (default from configuration)
            """
            with timed_operation("bedrock_similar", path=path[:50]) as op:
                try:
                    results = self.search_service.find_similar(path, limit)
                    op["result_count"] = len(results)
                    return self._format_results(results, f"No notes similar to {path} found.")
                except NotFoundError as e:
                    if e.path in self.graph.pending_embeddings:
                        return f"Error: {e.path} has not been embedded yet; try bedrock_refresh."
                    return self.format_error_response(e)
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="bedrock_refresh")
        def bedrock_refresh(path: str) -> str:
            """Re-embed a note after it was edited outside the server.
            Args:
                path: Path of the note to refresh
            """
            with timed_operation("bedrock_refresh", path=path[:50]):
                try:
                    outcome = self.graph.refresh_embedding(path)
                    if outcome.ok:
                        return f"Embedding refreshed for {outcome.path}"
                    return f"Error: embedding refresh failed for {outcome.path}: {outcome.error}"
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="bedrock_links")
        def bedrock_links(path: str) -> str:
            """List the links out of a note and the backlinks into it.
            Args:
                path: Path of the note
            """
            with timed_operation("bedrock_links", path=path[:50]):
                try:
                    note = self.graph.read_note(path)
                    result = f"# Links for {note.path}\n\n"
                    result += "## Links to\n"
                    for target in note.forward_links:
                        result += f"- [[{target}]]\n"
                    if not note.forward_links:
                        result += "(none)\n"
                    result += "\n## Linked from\n"
                    for source in note.backlinks:
                        result += f"- [[{source}]]\n"
                    if not note.backlinks:
                        result += "(none)\n"
                    return result
                except Exception as e:
                    return self.format_error_response(e)

        @self.mcp.tool(name="bedrock_reindex")
        def bedrock_reindex() -> str:
            """Re-embed every note in the notes directory."""
            with timed_operation("bedrock_reindex"):
                try:
                    stats = self.graph.reindex()
                    result = (
                        f"Reindexed {stats['indexed']} of {stats['total']} notes "
                        f"({stats['failed']} failed)."
                    )
                    pending = self.graph.pending_embeddings
                    if pending:
                        result += f"\nPending: {', '.join(pending)}"
                    return result
                except Exception as e:
                    return self.format_error_response(e)

    def run(self) -> None:
        """Run the MCP server."""
        self.mcp.run()
