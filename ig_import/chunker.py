from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import TextTooLongError

# Room for markers up to " (99/99)".
MARKER_RESERVE = 9
MAX_CHUNKS = 99

_SENTENCE_END_RE = re.compile(r"[.!?,;](?=\s|$)")
_WORD_END_RE = re.compile(r"[^\W_]\b")


@dataclass(frozen=True)
class Chunk:
    text: str
    index: int
    total: int


def _last_match_end(pattern: re.Pattern[str], window: str, limit: int) -> int:
    end = 0
    for m in pattern.finditer(window):
        if m.end() > limit:
            break
        end = m.end()
    return end


def _segment_end(text: str, pos: int, segment_size: int) -> int:
    # One character past the window so lookaheads see the real next character.
    window = text[pos : pos + segment_size + 1]

    end = _last_match_end(_SENTENCE_END_RE, window, segment_size)
    if end <= 0:
        end = _last_match_end(_WORD_END_RE, window, segment_size)
    if end <= 0:
        end = segment_size
    return pos + end


def segment_text(text: str, segment_size: int) -> list[str]:
    """
    Greedily cut text into runs of at most segment_size characters.

    Each run ends at the last sentence-like boundary (one of `.!?,;` followed by
    whitespace or the end of the text) inside its window. Windows without one end
    after the last complete word, and windows without any word end are cut hard.
    The tail is taken whole once it fits. Runs are stripped and empty runs dropped.
    """
    if segment_size < 1:
        raise ValueError("segment_size must be >= 1")

    segments: list[str] = []
    pos = 0
    n = len(text)

    while pos < n:
        if n - pos <= segment_size:
            end = n
        else:
            end = _segment_end(text, pos, segment_size)

        segment = text[pos:end].strip()
        if segment:
            segments.append(segment)
        pos = end

    return segments


def label_segments(segments: list[str]) -> list[Chunk]:
    total = len(segments)
    return [
        Chunk(text=f"{segment.strip()} ({i}/{total})", index=i, total=total)
        for i, segment in enumerate(segments, start=1)
    ]


def split_text(
    text: str,
    max_chars: int,
    *,
    marker_reserve: int = MARKER_RESERVE,
    max_chunks: int = MAX_CHUNKS,
) -> list[Chunk]:
    """
    Split text into a thread of chunks no longer than max_chars each.

    Text that already fits, or is only whitespace, comes back as a single unmarked
    chunk, so the result is never empty. Longer text is
    segmented and every segment gets a " (i/n)" page marker. Raises
    TextTooLongError when more than max_chunks chunks would be needed.
    """
    if max_chars < 1:
        raise ValueError("max_chars must be >= 1")

    if len(text) <= max_chars:
        return [Chunk(text=text, index=1, total=1)]

    segment_size = max_chars - marker_reserve
    if segment_size < 1:
        raise ValueError("marker_reserve must be smaller than max_chars")

    segments = segment_text(text, segment_size)
    if not segments:
        # Whitespace only: nothing to split, keep one unmarked chunk.
        return [Chunk(text=text.strip(), index=1, total=1)]
    if len(segments) > max_chunks:
        raise TextTooLongError(
            f"Text too long: {len(text)} chars would become {len(segments)} chunks",
            text_length=len(text),
            chunk_count=len(segments),
        )

    return label_segments(segments)
