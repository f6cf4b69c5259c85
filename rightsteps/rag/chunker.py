"""Sentence-aligned text chunking with overlap for the RAG pipeline.

Chunks never break inside a sentence. Overlap between consecutive chunks is
approximated in words: ``overlap // 6`` words (≈6 characters per word) are
carried from the end of the previous chunk into the next one.
"""
import re
from typing import List
from dataclasses import dataclass
import structlog

from rightsteps import config

logger = structlog.get_logger()

SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
CHARS_PER_WORD = 6


@dataclass(frozen=True)
class Chunk:
    """A contiguous, sentence-aligned slice of a document."""

    text: str
    chunk_index: int

    @property
    def size(self) -> int:
        return len(self.text)


def chunk_id(file_name: str, chunk_index: int) -> str:
    """Record id for a chunk; same name and index always map to the same id."""
    return f"{file_name}_chunk_{chunk_index}"


def split_sentences(text: str) -> List[str]:
    """Split text on runs of . ! ? and normalise each sentence to end in '.'."""
    return [
        piece.strip() + "."
        for piece in SENTENCE_SPLIT_RE.split(text)
        if piece.strip()
    ]


def overlap_word_count(overlap: int) -> int:
    return overlap // CHARS_PER_WORD


class TextChunker:
    """Sentence-based text chunker with word-approximated overlap."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Maximum chunk size in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

        if self.chunk_overlap < 0:
            raise ValueError(f"Overlap must be non-negative, got {self.chunk_overlap}")

    def chunk_text(self, text: str) -> List[Chunk]:
        """Split text into overlapping, sentence-aligned chunks.

        A single sentence longer than ``chunk_size`` is emitted whole.

        Args:
            text: Text to chunk

        Returns:
            List of Chunk objects numbered from 0 in emission order
        """
        if not text:
            return []

        overlap_words = overlap_word_count(self.chunk_overlap)
        pieces: List[str] = []
        buffer = ""
        buffer_size = 0

        for sentence in split_sentences(text):
            sentence_size = len(sentence)

            if buffer_size + sentence_size > self.chunk_size and buffer:
                pieces.append(buffer.strip())

                # Seed the next chunk with the tail of the one just emitted
                carried = buffer.split(" ")[-overlap_words:] if overlap_words else []
                buffer = " ".join(carried + [sentence])
                buffer_size = len(buffer)
            else:
                buffer += (" " if buffer else "") + sentence
                buffer_size += sentence_size + 1

        if buffer.strip():
            pieces.append(buffer.strip())

        chunks = [Chunk(text=piece, chunk_index=i) for i, piece in enumerate(pieces)]

        if chunks:
            logger.info(
                "text_chunked",
                text_length=len(text),
                chunk_count=len(chunks),
                avg_chunk_size=sum(c.size for c in chunks) // len(chunks),
            )

        return chunks

    def get_chunk_stats(self, chunks: List[Chunk]) -> dict:
        """Get statistics about a set of chunks."""
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [c.size for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


def chunk_document(text: str, chunk_size: int = 1000, overlap: int = 200) -> List[Chunk]:
    """Chunk text with explicit parameters (convenience function)."""
    return TextChunker(chunk_size=chunk_size, chunk_overlap=overlap).chunk_text(text)
