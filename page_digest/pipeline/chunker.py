"""Split oversized task input into chunks that fit a model's character budget."""

from __future__ import annotations

import re
from typing import List

# Highest priority first. U+0964 is the Devanagari danda.
SENTENCE_BREAKS = ("\n\n", "।", "。", "．", ".", "\n", " ")

BREAK_SEARCH_START = 0.8

_LINE_ENDINGS = re.compile(r"\r\n?")


def normalize_line_endings(text: str) -> str:
    return _LINE_ENDINGS.sub("\n", text)


def find_break(window: str, chunk_size: int) -> int:
    """
    Return the split offset for a window of ``chunk_size`` characters.

    Each break marker is searched from 80% of the chunk size onwards, in
    priority order; the first marker type that occurs wins and the split falls
    right after its first occurrence. Without any marker the window is cut at
    ``chunk_size``.
    """
    start = int(chunk_size * BREAK_SEARCH_START)
    for sentence_break in SENTENCE_BREAKS:
        index = window.find(sentence_break, start)
        if index != -1:
            return index + len(sentence_break)
    return chunk_size


def chunk_text(text: str, chunk_size: int) -> List[str]:
    """
    Split ``text`` into ordered chunks of at most ``chunk_size`` characters.

    Line endings are normalized to ``\\n`` first; joining the chunks gives back
    the normalized text. The last chunk holds the remainder and may be empty.
    ``chunk_size`` must be positive.
    """
    chunks: List[str] = []
    remaining = normalize_line_endings(text)

    while len(remaining) > chunk_size:
        index = find_break(remaining[:chunk_size], chunk_size)
        chunks.append(remaining[:index])
        remaining = remaining[index:]

    chunks.append(remaining)
    return chunks
