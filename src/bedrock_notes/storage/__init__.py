"""Storage layer for Bedrock Notes: note files, Markdown helpers and the vector store."""
