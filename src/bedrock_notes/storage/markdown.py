"""Markdown helpers for link markers and the backlink section.

Notes are plain Markdown. A link is the marker ``[[<display path>]]``
anywhere in the text; backlinks are materialized as one marker per line
under the literal ``## Linked From`` header. These helpers operate on text
only and never touch the filesystem.
"""
import re
from typing import List, Optional, Tuple

from bedrock_notes.config import BACKLINK_HEADER

MARKER_PATTERN = re.compile(r"\[\[([^\[\]]+?)\]\]")


def format_marker(path: str) -> str:
    """Return the link marker for a note path."""
    return f"[[{path}]]"


def find_marker(text: str) -> Optional[str]:
    """Return the target of the first marker in ``text``, or None."""
    match = MARKER_PATTERN.search(text or "")
    if not match:
        return None
    return match.group(1).strip() or None


def _split_lines(content: str) -> Tuple[List[str], bool]:
    if not content:
        return [], False
    trailing = content.endswith("\n")
    lines = content.split("\n")
    if trailing:
        lines.pop()
    return lines, trailing


def _join_lines(lines: List[str], trailing: bool = True) -> str:
    text = "\n".join(lines)
    return text + "\n" if trailing else text


def _header_index(lines: List[str], header: str) -> Optional[int]:
    for i, line in enumerate(lines):
        if line.rstrip() == header:
            return i
    return None


def _section_range(lines: List[str], header: str) -> Optional[Tuple[int, int]]:
    """Line range (start, end) of the entries below ``header``."""
    start = _header_index(lines, header)
    if start is None:
        return None
    end = len(lines)
    for i in range(start + 1, len(lines)):
        if lines[i].startswith("#"):
            end = i
            break
    return start + 1, end


def _unique_markers(lines: List[str]) -> List[str]:
    seen = []
    for line in lines:
        for target in MARKER_PATTERN.findall(line):
            target = target.strip()
            if target and target not in seen:
                seen.append(target)
    return seen


def parse_title(content: str) -> Optional[str]:
    """Return the text of the first ``# `` heading."""
    for line in (content or "").split("\n"):
        if line.startswith("# "):
            return line[2:].strip() or None
    return None


def extract_backlinks(content: str, header: str = BACKLINK_HEADER) -> List[str]:
    """Paths listed in the backlink section, most recent first."""
    lines, _ = _split_lines(content or "")
    section = _section_range(lines, header)
    if section is None:
        return []
    start, end = section
    return _unique_markers(lines[start:end])


def extract_forward_links(content: str, header: str = BACKLINK_HEADER) -> List[str]:
    """Paths linked from the note body (the backlink section is not body)."""
    lines, _ = _split_lines(content or "")
    section = _section_range(lines, header)
    if section is not None:
        start, end = section
        lines = lines[: start - 1] + lines[end:]
    return _unique_markers(lines)


def add_backlink_entry(
    content: str, marker: str, header: str = BACKLINK_HEADER
) -> Tuple[str, bool]:
    """Insert ``marker`` directly below the backlink header.

    The header is appended at the end when missing. Nothing changes when
    the marker is already listed in the section; markers under later
    headings do not count.

    Returns:
        Tuple of (new content, whether the marker was added).
    """
    lines, _ = _split_lines(content or "")

    index = _header_index(lines, header)
    if index is None:
        if lines and lines[-1].strip():
            lines.append("")
        lines.append(header)
        index = len(lines) - 1

    start, end = _section_range(lines, header)
    if any(marker in line for line in lines[start:end]):
        return content, False

    lines.insert(index + 1, marker)
    return _join_lines(lines), True


def insert_marker(
    content: str,
    marker: str,
    position: Optional[Tuple[int, int]] = None,
    header: str = BACKLINK_HEADER,
) -> str:
    """Insert a link marker into note text.

    Args:
        content: Current note text.
        marker: The ``[[...]]`` marker to insert.
        position: Optional ``(line, column)``, both 0-based. The marker is
            inserted before the character at ``column``; lines past the end
            of the note are created. When omitted the marker goes on its own
            line at the end of the body, above the backlink section.
        header: Backlink section header.

    Returns:
        The new note text.
    """
    lines, trailing = _split_lines(content or "")

    if position is not None:
        line_no, column = position
        if line_no < 0 or column < 0:
            raise ValueError("position must be non-negative")
        while len(lines) <= line_no:
            lines.append("")
        line = lines[line_no]
        column = min(column, len(line))
        lines[line_no] = line[:column] + marker + line[column:]
        return _join_lines(lines, trailing or not content)

    index = _header_index(lines, header)
    end = len(lines) if index is None else index
    while end > 0 and not lines[end - 1].strip():
        end -= 1

    block = [marker]
    if end > 0 and lines[end - 1].startswith("#"):
        block.insert(0, "")
    rest = lines[end:]
    while rest and not rest[0].strip():
        rest.pop(0)
    if rest:
        block.append("")
    return _join_lines(lines[:end] + block + rest)
