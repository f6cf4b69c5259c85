"""Tests for sentence-aligned chunking with overlap."""
import pytest

from rightsteps.rag.chunker import (
    Chunk,
    TextChunker,
    chunk_document,
    chunk_id,
    overlap_word_count,
    split_sentences,
)


class TestSplitSentences:

    def test_normalizes_terminal_punctuation(self):
        assert split_sentences("Hello!! Is it me?! Yes...") == ["Hello.", "Is it me.", "Yes."]

    def test_drops_blank_pieces(self):
        assert split_sentences("  ...  !!  ?") == []

    def test_trailing_text_without_punctuation_is_a_sentence(self):
        assert split_sentences("First. second part") == ["First.", "second part."]


class TestChunkDocument:

    def test_short_text_yields_single_chunk(self):
        chunks = chunk_document("The sky is blue. Water is wet. Fire is hot.", 1000, 200)

        assert len(chunks) == 1
        assert chunks[0].text == "The sky is blue. Water is wet. Fire is hot."
        assert chunks[0].chunk_index == 0
        assert chunks[0].size == len(chunks[0].text)

    def test_empty_input_yields_no_chunks(self):
        assert chunk_document("") == []
        assert chunk_document("   \n\t ") == []
        assert chunk_document("...!!?") == []

    def test_long_document_respects_size_bound(self, long_document):
        assert len(long_document) >= 3000

        chunks = chunk_document(long_document, chunk_size=1000, overlap=200)
        longest_sentence = max(len(s) for s in split_sentences(long_document))

        assert len(chunks) >= 3
        for chunk in chunks:
            assert chunk.size <= 1000 + longest_sentence

    def test_chunk_indexes_are_contiguous_from_zero(self, long_document):
        chunks = chunk_document(long_document)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))

    def test_each_chunk_starts_with_overlap_from_previous(self, long_document):
        chunks = chunk_document(long_document, chunk_size=1000, overlap=200)
        words = overlap_word_count(200)

        assert words == 33
        for previous, current in zip(chunks, chunks[1:]):
            assert current.text.split(" ")[:words] == previous.text.split(" ")[-words:]

    def test_sentences_reconstruct_in_order(self, long_document):
        chunks = chunk_document(long_document, chunk_size=1000, overlap=200)
        words = overlap_word_count(200)

        parts = [chunks[0].text] + [" ".join(c.text.split(" ")[words:]) for c in chunks[1:]]

        assert " ".join(parts) == " ".join(split_sentences(long_document))

    def test_exact_boundaries_small_example(self):
        text = "Alpha beta gamma. Delta epsilon zeta. Eta theta iota."

        chunks = chunk_document(text, chunk_size=40, overlap=12)

        assert [c.text for c in chunks] == [
            "Alpha beta gamma. Delta epsilon zeta.",
            "epsilon zeta. Eta theta iota.",
        ]

    def test_overlap_below_six_chars_carries_no_words(self):
        text = "Alpha beta gamma. Delta epsilon zeta. Eta theta iota."

        chunks = chunk_document(text, chunk_size=20, overlap=5)

        assert [c.text for c in chunks] == [
            "Alpha beta gamma.",
            "Delta epsilon zeta.",
            "Eta theta iota.",
        ]

    def test_oversize_sentence_is_not_split(self):
        long_sentence = "word " * 40 + "end"
        text = f"Short one. {long_sentence}. Another short one."

        chunks = chunk_document(text, chunk_size=50, overlap=0)

        assert any(c.text == long_sentence.strip() + "." for c in chunks)
        for chunk in chunks:
            assert not chunk.text.startswith(" ")

    def test_rechunking_is_idempotent(self, long_document):
        assert chunk_document(long_document) == chunk_document(long_document)

    def test_chunks_are_immutable(self):
        chunk = chunk_document("One sentence here.")[0]
        with pytest.raises(AttributeError):
            chunk.text = "changed"


class TestTextChunker:

    def test_defaults_come_from_config(self, monkeypatch):
        from rightsteps import config

        monkeypatch.setattr(config, "CHUNK_SIZE", 500)
        monkeypatch.setattr(config, "CHUNK_OVERLAP", 60)

        chunker = TextChunker()

        assert chunker.chunk_size == 500
        assert chunker.chunk_overlap == 60

    @pytest.mark.parametrize("size,overlap", [(0, 0), (-5, 10), (100, -1)])
    def test_invalid_parameters_rejected(self, size, overlap):
        with pytest.raises(ValueError):
            TextChunker(chunk_size=size, chunk_overlap=overlap)

    def test_chunk_stats(self):
        chunker = TextChunker(chunk_size=40, chunk_overlap=12)
        chunks = chunker.chunk_text("Alpha beta gamma. Delta epsilon zeta. Eta theta iota.")

        stats = chunker.get_chunk_stats(chunks)

        assert stats["chunk_count"] == 2
        assert stats["max_chunk_size"] == 37
        assert stats["min_chunk_size"] == 29
        assert chunker.get_chunk_stats([])["chunk_count"] == 0

    def test_empty_stats_have_same_keys(self):
        chunker = TextChunker(chunk_size=40, chunk_overlap=12)
        chunks = chunker.chunk_text("Alpha beta gamma. Delta epsilon zeta.")

        empty = chunker.get_chunk_stats([])

        assert empty.keys() == chunker.get_chunk_stats(chunks).keys()
        assert empty["overlap"] == 12

    def test_overlap_larger_than_chunk_size_is_accepted(self):
        chunks = chunk_document(
            "Alpha beta gamma. Delta epsilon zeta. Eta theta iota.", chunk_size=30, overlap=60
        )

        # 60 // 6 = 10 words, more than any buffer holds, so the whole buffer carries
        assert [c.text for c in chunks] == [
            "Alpha beta gamma.",
            "Alpha beta gamma. Delta epsilon zeta.",
            "Alpha beta gamma. Delta epsilon zeta. Eta theta iota.",
        ]


def test_chunk_id_is_deterministic():
    assert chunk_id("doc.txt", 2) == "doc.txt_chunk_2"
    assert Chunk(text="x.", chunk_index=0).size == 2
