"""Sentence-aware text chunking with overlapping windows.

Splits document text into :class:`~refdata_rag.models.documents.TextChunk`
segments of at most ``chunk_size`` characters (default 1000) where
consecutive chunks share roughly ``overlap`` characters (default 200) of
trailing sentences.

The algorithm:

1. **Sentence split** -- a sentence ends at ``.``, ``!`` or ``?`` followed
   by a space or newline.  An unterminated tail is its own sentence.
   Sentences are stripped and blank ones dropped.
2. **Accumulate** -- sentences are joined with single spaces while the
   joined length stays within ``chunk_size``.
3. **Close and seed** -- when the next sentence does not fit, the chunk is
   closed and the next one is seeded with the shortest run of trailing
   sentences that reaches ``overlap`` characters.  Seed sentences are
   dropped from the front until the triggering sentence fits.
4. **Oversized sentences** -- a sentence longer than ``chunk_size`` is
   packed word by word into chunks without overlap; a single word longer
   than ``chunk_size`` is cut into ``chunk_size`` pieces.

No chunk ever exceeds ``chunk_size`` characters.
"""

from __future__ import annotations

import re
from typing import NamedTuple

import structlog

from refdata_rag.models.documents import TextChunk
from refdata_rag.utils.errors import InvalidArgumentError

logger = structlog.get_logger(logger_name=__name__)

# A terminator only ends a sentence when followed by a space or newline, so
# "3.5" and "e.g.," stay intact.
_SENTENCE_END = re.compile(r"[.!?](?=[ \n])")
_WORD = re.compile(r"\S+")


class _Span(NamedTuple):
    """A stripped piece of text and where it sits in the original."""

    text: str
    start: int
    end: int


class TextChunker:
    """Splits text into overlapping, sentence-aligned chunks.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1000).
    overlap:
        Target characters of trailing context carried into the next chunk
        (default 200).  Must be smaller than *chunk_size*.

    Raises
    ------
    InvalidArgumentError
        If the sizes are not ``chunk_size > overlap >= 0``.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        self._validate(chunk_size, overlap)
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

    def chunk(
        self,
        content: str | None,
        chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> list[TextChunk]:
        """Split *content* into overlapping :class:`TextChunk` objects.

        Parameters
        ----------
        content:
            The text to chunk.  ``None``, empty and whitespace-only input
            yield an empty list.
        chunk_size, overlap:
            Per-call overrides of the sizes given at construction.

        Returns
        -------
        list[TextChunk]
            Chunks in document order.

        Raises
        ------
        InvalidArgumentError
            If the effective sizes are not ``chunk_size > overlap >= 0``.
        """
        size = self._chunk_size if chunk_size is None else chunk_size
        lap = self._overlap if overlap is None else overlap
        self._validate(size, lap)

        if not content:
            return []

        sentences = self._split_sentences(content)
        chunks = self._accumulate(sentences, size, lap)

        logger.debug(
            "chunking_complete",
            content_length=len(content),
            sentences=len(sentences),
            num_chunks=len(chunks),
            chunk_size=size,
            overlap=lap,
        )
        return chunks

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(chunk_size: int, overlap: int) -> None:
        if chunk_size <= 0:
            raise InvalidArgumentError("Chunk size must be positive")
        if overlap < 0:
            raise InvalidArgumentError("Overlap size cannot be negative")
        if overlap >= chunk_size:
            raise InvalidArgumentError("Overlap size must be less than chunk size")

    # ------------------------------------------------------------------
    # Sentence / word splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _split_sentences(text: str) -> list[_Span]:
        """Split *text* into stripped sentences with their original offsets."""
        spans: list[_Span] = []
        last = 0
        for match in _SENTENCE_END.finditer(text):
            TextChunker._append_stripped(spans, text, last, match.end())
            last = match.end()
        TextChunker._append_stripped(spans, text, last, len(text))
        return spans

    @staticmethod
    def _append_stripped(spans: list[_Span], text: str, start: int, end: int) -> None:
        raw = text[start:end]
        stripped = raw.strip()
        if not stripped:
            return
        lead = len(raw) - len(raw.lstrip())
        begin = start + lead
        spans.append(_Span(stripped, begin, begin + len(stripped)))

    @staticmethod
    def _split_words(sentence: _Span) -> list[_Span]:
        return [
            _Span(m.group(), sentence.start + m.start(), sentence.start + m.end())
            for m in _WORD.finditer(sentence.text)
        ]

    # ------------------------------------------------------------------
    # Chunk accumulation
    # ------------------------------------------------------------------

    def _accumulate(self, sentences: list[_Span], chunk_size: int, overlap: int) -> list[TextChunk]:
        """Greedily pack sentences into chunks, seeding each with overlap."""
        chunks: list[TextChunk] = []
        current: list[_Span] = []

        for sentence in sentences:
            if len(sentence.text) > chunk_size:
                if current:
                    chunks.append(self._make_chunk(current))
                    current = []
                chunks.extend(self._chunk_long_sentence(sentence, chunk_size))
                continue

            if current and _joined_length(current) + 1 + len(sentence.text) > chunk_size:
                chunks.append(self._make_chunk(current))
                current = self._overlap_seed(current, len(sentence.text), chunk_size, overlap)

            current.append(sentence)

        if current:
            chunks.append(self._make_chunk(current))

        return chunks

    @staticmethod
    def _overlap_seed(
        closed: list[_Span],
        incoming_length: int,
        chunk_size: int,
        overlap: int,
    ) -> list[_Span]:
        """Return the trailing sentences of *closed* that seed the next chunk."""
        if overlap == 0:
            return []

        seed: list[_Span] = []
        for span in reversed(closed):
            seed.insert(0, span)
            if _joined_length(seed) >= overlap:
                break

        # The seed plus the incoming sentence must still fit.
        while seed and _joined_length(seed) + 1 + incoming_length > chunk_size:
            seed.pop(0)
        return seed

    def _chunk_long_sentence(self, sentence: _Span, chunk_size: int) -> list[TextChunk]:
        """Pack the words of an oversized sentence into chunks without overlap."""
        chunks: list[TextChunk] = []
        group: list[_Span] = []

        for word in self._split_words(sentence):
            if len(word.text) > chunk_size:
                if group:
                    chunks.append(self._make_chunk(group))
                    group = []
                for offset in range(0, len(word.text), chunk_size):
                    piece = word.text[offset : offset + chunk_size]
                    start = word.start + offset
                    chunks.append(
                        TextChunk(content=piece, start_index=start, end_index=start + len(piece))
                    )
                continue

            if group and _joined_length(group) + 1 + len(word.text) > chunk_size:
                chunks.append(self._make_chunk(group))
                group = []
            group.append(word)

        if group:
            chunks.append(self._make_chunk(group))
        return chunks

    @staticmethod
    def _make_chunk(spans: list[_Span]) -> TextChunk:
        return TextChunk(
            content=" ".join(span.text for span in spans),
            start_index=spans[0].start,
            end_index=spans[-1].end,
        )


def _joined_length(spans: list[_Span]) -> int:
    """Length of the spans joined by single spaces."""
    if not spans:
        return 0
    return sum(len(span.text) for span in spans) + len(spans) - 1
