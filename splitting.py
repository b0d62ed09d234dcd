"""
Statement splitting for section documents
Quote-aware scan that cuts a section into individual statement texts
"""

from typing import List, Sequence
import re


# Terminator followed by a line break, in each line-ending spelling
DEFAULT_DELIMITERS = (";\r\n", ";\r", ";\n")

TERMINATOR = ";"

SECTION_HEADER_PATTERN = re.compile(r'^\s*section(?:\s+[^;=]*)?\s*$', re.IGNORECASE)


def is_section_header(text: str) -> bool:
    """True for a segment whose last non-blank line is a 'section Name' header

    Lines above the header (comments, attributes) belong to the header segment.
    """
    lines = [line for line in re.split(r'[\r\n]', text) if line.strip()]
    return bool(lines) and bool(SECTION_HEADER_PATTERN.match(lines[-1]))


def _quoted_literal_end(text: str, pos: int, quote: str) -> int:
    """Return the index just past the quoted literal opening at pos.

    A doubled quote inside the literal is an escaped quote. An unterminated
    literal runs to the end of the text.
    """
    i = pos + 1
    while i < len(text):
        if text[i] == quote:
            if text[i + 1:i + 2] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return len(text)


def _match_delimiter_at_position(text: str, pos: int, delimiters: Sequence[str]) -> str:
    """Longest delimiter starting at pos, or '' if none"""
    for delimiter in delimiters:
        if text.startswith(delimiter, pos):
            return delimiter
    return ""


def split_segments(text: str, delimiters: Sequence[str] = DEFAULT_DELIMITERS, quote: str = '"') -> List[str]:
    """Split text on any delimiter that is not inside a quoted literal"""
    # Longest first so ';\r\n' wins over ';\r'
    ordered = sorted(set(delimiters), key=len, reverse=True)
    segments = []
    start = 0
    pos = 0

    while pos < len(text):
        if quote and text[pos] == quote:
            pos = _quoted_literal_end(text, pos, quote)
            continue

        delimiter = _match_delimiter_at_position(text, pos, ordered) if ordered else ""
        if delimiter:
            segments.append(text[start:pos])
            pos += len(delimiter)
            start = pos
        else:
            pos += 1

    segments.append(text[start:])
    return segments


def split_statements(text: str, delimiters: Sequence[str] = DEFAULT_DELIMITERS, quote: str = '"') -> List[str]:
    """
    Split a section document into statement texts, in original order

    Examples:
      split_statements("section S;\\r\\nX = 1;\\r\\nY = 2;") -> ["X = 1", "Y = 2"]
      split_statements("A = 1") -> ["A = 1"]
      split_statements("// generated\\nsection S;\\nX = 1") -> ["X = 1"]
    """
    text = text.strip()
    if not text:
        return []

    segments = split_segments(text, delimiters, quote)

    # The last statement has no delimiter after it, only its terminator
    last = segments[-1].rstrip()
    if last.endswith(TERMINATOR):
        last = last[:-len(TERMINATOR)]
    segments[-1] = last

    # The section header ends the first segment, after any leading lines
    if is_section_header(segments[0]):
        segments = segments[1:]

    statements = [segment.strip() for segment in segments]
    return [statement for statement in statements if statement]
