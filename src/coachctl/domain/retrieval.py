"""Keyword retrieval over the doctrine corpus.

Pure functions, no infrastructure dependencies. Chunks are recomputed per
call; nothing is cached between turns.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from coachctl.domain.doctrine import DoctrineSpec

MIN_CHUNK_LENGTH = 50
MIN_TERM_LENGTH = 3

# Fixed vocabulary that earns a bonus when present in both chunk and message.
DOCTRINE_TERMS: tuple[str, ...] = (
    "apex",
    "slave",
    "frame",
    "dominion",
    "win-win",
    "power",
    "shame",
    "boundary",
    "want",
    "should",
    "sovereign",
    "direct",
)

KEYWORD_WEIGHT = 1
DOCTRINE_TERM_WEIGHT = 2

_NON_WORD = re.compile(r"[^\w\s]")


def split_into_chunks(
    corpus: str, delimiter: str, *, min_length: int = MIN_CHUNK_LENGTH
) -> list[str]:
    """Split *corpus* on *delimiter*, trim, and keep chunks longer than *min_length*."""
    if not corpus:
        return []
    pieces = corpus.split(delimiter) if delimiter else [corpus]
    chunks = (piece.strip() for piece in pieces)
    return [chunk for chunk in chunks if len(chunk) > min_length]


def extract_keywords(message: str) -> list[str]:
    """Lowercase, strip punctuation, and keep whitespace tokens over 3 chars."""
    cleaned = _NON_WORD.sub("", message.lower())
    return [word for word in cleaned.split() if len(word) > MIN_TERM_LENGTH]


def score_chunk(chunk: str, keywords: list[str], message_lower: str) -> int:
    """Relevance score of one chunk for an already-tokenized message."""
    chunk_lower = chunk.lower()
    score = sum(KEYWORD_WEIGHT for keyword in keywords if keyword in chunk_lower)
    for term in DOCTRINE_TERMS:
        if term in chunk_lower and term in message_lower:
            score += DOCTRINE_TERM_WEIGHT
    return score


def retrieve_relevant(message: str, chunks: list[str], max_chunks: int) -> list[str]:
    """Return at most *max_chunks* chunks with a positive score, best first.

    Ties keep corpus order (the sort is stable).
    """
    if not chunks or max_chunks <= 0:
        return []
    keywords = extract_keywords(message)
    message_lower = message.lower()
    scored = [(score_chunk(chunk, keywords, message_lower), chunk) for chunk in chunks]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [chunk for score, chunk in scored[:max_chunks] if score > 0]


@dataclass(frozen=True)
class CorpusRetriever:
    """Retrieval settings bound to one corpus."""

    corpus: str
    delimiter: str = "---"
    max_chunks: int = 5
    min_chunk_length: int = MIN_CHUNK_LENGTH
    enabled: bool = True

    @classmethod
    def from_spec(
        cls,
        spec: DoctrineSpec,
        corpus: str,
        *,
        max_chunks: int | None = None,
        min_chunk_length: int = MIN_CHUNK_LENGTH,
        enabled: bool | None = None,
    ) -> CorpusRetriever:
        """Build from the spec's corpus block; keyword overrides win when given."""
        retrieval = spec.corpus.retrieval
        return cls(
            corpus=corpus,
            delimiter=spec.corpus.delimiter,
            max_chunks=retrieval.max_chunks if max_chunks is None else max_chunks,
            min_chunk_length=min_chunk_length,
            enabled=retrieval.enabled if enabled is None else enabled,
        )

    def chunks(self) -> list[str]:
        return split_into_chunks(self.corpus, self.delimiter, min_length=self.min_chunk_length)

    def retrieve(self, message: str) -> list[str]:
        if not self.enabled:
            return []
        return retrieve_relevant(message, self.chunks(), self.max_chunks)
