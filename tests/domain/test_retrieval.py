"""Tests for keyword retrieval over the doctrine corpus."""

from __future__ import annotations

from coachctl.domain.doctrine import DoctrineSpec, load_corpus
from coachctl.domain.retrieval import (
    CorpusRetriever,
    extract_keywords,
    retrieve_relevant,
    score_chunk,
    split_into_chunks,
)

LONG_A = "Alpha chunk about holding apex frame under pressure from everyone around."
LONG_B = "Beta chunk about sleep, food and training routines for the coming week."


class TestSplitIntoChunks:
    def test_drops_short_and_empty_chunks(self) -> None:
        corpus = f"{LONG_A}\n---\nShort note.\n---\n\n---\n{LONG_B}"
        assert split_into_chunks(corpus, "---") == [LONG_A, LONG_B]

    def test_empty_corpus(self) -> None:
        assert split_into_chunks("", "---") == []

    def test_chunk_must_exceed_min_length(self) -> None:
        exact = "x" * 50
        assert split_into_chunks(exact, "---") == []
        assert split_into_chunks(exact + "y", "---") == [exact + "y"]

    def test_packaged_corpus(self) -> None:
        chunks = split_into_chunks(load_corpus(), "---")
        assert len(chunks) == 7
        assert chunks[0].startswith("APEX FRAME")
        assert all("Short note." not in chunk for chunk in chunks)


class TestExtractKeywords:
    def test_lowercases_and_strips_punctuation(self) -> None:
        assert extract_keywords("How do I HOLD frame, really?!") == ["hold", "frame", "really"]

    def test_drops_short_tokens(self) -> None:
        assert extract_keywords("a an the and") == []


class TestScoring:
    def test_keyword_and_doctrine_term_bonus(self) -> None:
        keywords = extract_keywords("apex question")
        # "apex": +1 as keyword, +2 as doctrine term present in both.
        assert score_chunk("The apex is here.", keywords, "apex question") == 3

    def test_doctrine_term_requires_message_match(self) -> None:
        assert score_chunk("The apex is here.", [], "nothing relevant") == 0

    def test_zero_scores_are_excluded(self) -> None:
        assert retrieve_relevant("zzzz qqqq", [LONG_A, LONG_B], 5) == []

    def test_ties_keep_corpus_order(self) -> None:
        first = "One chunk that mentions training in passing and nothing else."
        second = "Another chunk that mentions training in passing, also nothing."
        assert retrieve_relevant("training", [first, second], 5) == [first, second]

    def test_max_chunks_caps_result(self) -> None:
        chunks = [f"Chunk {i} talks about training plans for the whole season." for i in range(4)]
        assert len(retrieve_relevant("training", chunks, 2)) == 2

    def test_non_positive_max_chunks(self) -> None:
        assert retrieve_relevant("apex", [LONG_A], 0) == []


class TestCorpusRetriever:
    def test_apex_frame_ranks_apex_chunk_first(self, doctrine: DoctrineSpec) -> None:
        retriever = CorpusRetriever.from_spec(doctrine, load_corpus())
        results = retriever.retrieve("How do I hold apex frame?")
        assert results
        assert results[0].startswith("APEX FRAME")
        assert len(results) <= doctrine.corpus.retrieval.max_chunks

    def test_disabled_returns_nothing(self, doctrine: DoctrineSpec) -> None:
        retriever = CorpusRetriever.from_spec(doctrine, load_corpus(), enabled=False)
        assert retriever.retrieve("apex frame") == []

    def test_overrides_win(self, doctrine: DoctrineSpec) -> None:
        retriever = CorpusRetriever.from_spec(doctrine, load_corpus(), max_chunks=1)
        assert retriever.max_chunks == 1
        assert len(retriever.retrieve("apex frame want should")) == 1

    def test_delimiter_from_spec(self, doctrine: DoctrineSpec) -> None:
        retriever = CorpusRetriever.from_spec(doctrine, "")
        assert retriever.delimiter == "---"
        assert retriever.chunks() == []
