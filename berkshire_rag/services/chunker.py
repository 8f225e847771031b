# =============================================================================
# Character Window Chunker
# =============================================================================
#
# Splits the corpus text into overlapping, fixed-width character
# windows. Boundaries depend only on (text, chunk_size, chunk_overlap), so
# re-running ingestion over identical letters reproduces identical chunks.
#
# ALGORITHM:
#   step = chunk_size - chunk_overlap
#   window i spans [i * step, i * step + chunk_size)
#   stop as soon as a window reaches the end of the text
#
# Stopping at the first window that covers the tail means no window is
# entirely contained in its predecessor's overlap. For a text of length
# L > overlap this yields ceil((L - overlap) / step) windows; consecutive
# windows share exactly `chunk_overlap` characters and only the last one
# may be shorter than chunk_size.
#
# Whitespace-only windows are generated (they keep the index sequence
# stable) but dropped by chunk_text() before anything reaches the store.
# Token counts (tiktoken, cl100k_base) are recorded for monitoring only;
# they never influence boundaries.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass

import tiktoken

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextWindow:
    """A raw window over the source text, blank or not."""

    index: int  # 0-indexed window position
    start: int  # inclusive character offset
    end: int  # exclusive character offset
    text: str


@dataclass(frozen=True)
class ChunkResult:
    """A non-blank window ready for embedding and storage."""

    content: str
    chunk_index: int
    start: int
    end: int
    token_count: int


# ---------------------------------------------------------------------------
# Tiktoken Encoder — Cached Singleton
# ---------------------------------------------------------------------------
# cl100k_base is the encoding used by text-embedding-3-small.
# ---------------------------------------------------------------------------

_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Lazily initialize and cache the tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding("cl100k_base")
    return _encoder


def count_tokens(text: str) -> int:
    return len(_get_encoder().encode(text, disallowed_special=()))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def sliding_windows(
    text: str,
    chunk_size: int = 800,
    chunk_overlap: int = 200,
) -> list[TextWindow]:
    """
    Partition `text` into overlapping character windows.

    Args:
        text: Corpus text (pages and documents already joined).
        chunk_size: Window width in characters.
        chunk_overlap: Characters shared by consecutive windows.

    Returns:
        Every window in order, including whitespace-only ones.

    Raises:
        ValueError: If chunk_size <= 0 or overlap is outside [0, chunk_size).
    """
    _validate(chunk_size, chunk_overlap)

    step = chunk_size - chunk_overlap
    windows: list[TextWindow] = []
    total = len(text)

    for index, start in enumerate(range(0, total, step)):
        end = min(start + chunk_size, total)
        windows.append(TextWindow(index=index, start=start, end=end, text=text[start:end]))
        if end >= total:
            break

    return windows


def chunk_text(
    text: str,
    chunk_size: int = 800,
    chunk_overlap: int = 200,
    source: str = "",
) -> list[ChunkResult]:
    """
    Split text into storable chunks, dropping whitespace-only windows.

    The chunk content is the raw window text (not stripped), so chunk
    boundaries stay exactly at the window offsets.

    Pipeline position: Step 2 of ingestion (extract → chunk → embed → store).
    """
    windows = sliding_windows(text, chunk_size, chunk_overlap)
    chunks = [
        ChunkResult(
            content=window.text,
            chunk_index=window.index,
            start=window.start,
            end=window.end,
            token_count=count_tokens(window.text),
        )
        for window in windows
        if window.text.strip()
    ]

    dropped = len(windows) - len(chunks)
    logger.info(
        "Chunked '%s': %d characters → %d windows (%d blank dropped), "
        "chunk_size=%d, overlap=%d",
        source or "<text>", len(text), len(windows), dropped,
        chunk_size, chunk_overlap,
    )
    return chunks


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def _validate(chunk_size: int, chunk_overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not 0 <= chunk_overlap < chunk_size:
        raise ValueError(
            f"chunk_overlap must satisfy 0 <= overlap < chunk_size "
            f"(got overlap={chunk_overlap}, chunk_size={chunk_size})"
        )
