"""
Bedrock Notes - a personal knowledge base of interlinked Markdown notes.

Notes are plain files linked with ``[[wiki]]`` markers. Every link is mirrored
as a backlink in the target note, and every note is embedded so it can be
found by semantic similarity as well as by following links.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("bedrock-notes")
except PackageNotFoundError:
    __version__ = "0.3.0"
