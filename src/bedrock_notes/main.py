#!/usr/bin/env python
"""Main entry point for the Bedrock Notes MCP server."""
import argparse
import logging
import os
import sys
from pathlib import Path

from bedrock_notes.config import config
from bedrock_notes.models.db_models import init_db
from bedrock_notes.observability import configure_logging
from bedrock_notes.server.mcp_server import BedrockMcpServer


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Bedrock Notes MCP Server")
    parser.add_argument(
        "--notes-dir",
        help="Directory holding the Markdown notes",
        type=str,
        default=os.environ.get("BEDROCK_NOTES_DIR")
    )
    parser.add_argument(
        "--database-path",
        help="SQLite database file path (relative paths are under the notes directory)",
        type=str,
        default=os.environ.get("BEDROCK_DATABASE_PATH")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("BEDROCK_LOG_LEVEL", "INFO")
    )
    parser.add_argument(
        "--sync-embeddings",
        help="Refresh embeddings inline instead of on a background worker",
        action="store_true",
    )
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.notes_dir:
        config.notes_dir = Path(args.notes_dir)
    if args.database_path:
        config.database_path = Path(args.database_path)
    if args.sync_embeddings:
        config.async_embedding_refresh = False


def main(argv=None):
    """Run the Bedrock Notes MCP server."""
    args = parse_args(argv)
    update_config(args)

    # Console + persistent file logging with rotation
    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(level=log_level, console=True)
    except OSError as e:
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    try:
        db_url = config.get_db_url()
        logger.info(f"Using SQLite database: {db_url}")
        engine = init_db(db_url)
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        sys.exit(1)

    try:
        logger.info("Starting Bedrock Notes MCP server")
        server = BedrockMcpServer(engine=engine)
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
