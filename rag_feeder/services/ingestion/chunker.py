"""Fixed-size character chunking with overlapping windows.

Splits a document's text into windows of ``chunk_size`` characters, each
starting ``chunk_size - overlap`` characters after the previous one, so
that a sentence cut by one boundary appears whole in the neighbouring
chunk.  The last window always ends at the end of the text.

For text of length ``L`` longer than ``C`` the number of chunks is
``ceil((L - O) / (C - O))``; text no longer than ``C`` yields one chunk
equal to the text.
"""

from __future__ import annotations

import math

import structlog

from rag_feeder.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class TextChunker:
    """Splits text into overlapping fixed-size character windows.

    Parameters
    ----------
    chunk_size:
        Window length in characters (default 1000).
    overlap:
        Characters shared by consecutive windows (default 200).  Must be
        non-negative and smaller than *chunk_size*.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ConfigurationError(
                f"overlap must be in [0, chunk_size), got overlap={overlap} chunk_size={chunk_size}"
            )
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, text: str) -> list[str]:
        """Split *text* into overlapping windows.

        Returns
        -------
        list[str]
            Windows in document order.  Empty or whitespace-only text
            returns an empty list.
        """
        if not text or not text.strip():
            return []

        length = len(text)
        step = self._chunk_size - self._overlap
        chunks: list[str] = []
        start = 0
        while True:
            end = min(start + self._chunk_size, length)
            chunks.append(text[start:end])
            if end == length:
                break
            start += step

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            text_length=length,
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks

    def planned_count(self, text: str) -> int:
        """Return how many chunks :meth:`split` would produce for *text*."""
        if not text or not text.strip():
            return 0
        length = len(text)
        if length <= self._chunk_size:
            return 1
        return math.ceil((length - self._overlap) / (self._chunk_size - self._overlap))

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough token estimate of four characters per token."""
        return math.ceil(len(text) / 4)
