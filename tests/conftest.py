"""Shared fixtures: deterministic model service fakes and an in-memory index."""
import hashlib
import re
from typing import List

import pytest

from rightsteps.pipeline import DocumentPipeline
from rightsteps.rag.chunker import TextChunker
from rightsteps.rag.embedder import EmbeddingClient
from rightsteps.rag.index_gateway import VectorIndexGateway
from rightsteps.rag.store_faiss import FAISSVectorStore

DIMENSION = 768

WORD_RE = re.compile(r"\w+")


def hashed_bag_of_words(text: str, dimension: int = DIMENSION) -> List[float]:
    """Deterministic embedding: word counts hashed into ``dimension`` buckets."""
    vector = [0.0] * dimension
    for word in WORD_RE.findall(text.lower()):
        bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % dimension
        vector[bucket] += 1.0
    return vector


class FakeModelService:
    """Stands in for Gemini/Ollama: hashed embeddings and canned completions."""

    def __init__(self, reply: str = "Generated answer.", dimension: int = DIMENSION):
        self.reply = reply
        self.dimension = dimension
        self.embed_calls: List[str] = []
        self.prompts: List[str] = []
        self.embed_error = None
        self.generate_error = None

    async def embed(self, text: str) -> List[float]:
        self.embed_calls.append(text)
        if self.embed_error is not None:
            raise self.embed_error
        return hashed_bag_of_words(text, self.dimension)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.generate_error is not None:
            raise self.generate_error
        return self.reply

    async def ping(self) -> bool:
        return True


@pytest.fixture
def llm():
    return FakeModelService()


@pytest.fixture
def store():
    store = FAISSVectorStore(dimension=DIMENSION)
    store.init_new_index()
    return store


@pytest.fixture
def embedder(llm):
    return EmbeddingClient(llm, dimension=DIMENSION)


@pytest.fixture
def gateway(store, embedder):
    return VectorIndexGateway(store, embedder, max_concurrency=4)


@pytest.fixture
def make_pipeline(store, llm):
    def factory(rag_enabled: bool = True, chunk_size: int = 1000, chunk_overlap: int = 200):
        return DocumentPipeline(
            store=store,
            llm=llm,
            rag_enabled=rag_enabled,
            chunker=TextChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap),
            top_k=3,
            embedding_dimension=DIMENSION,
        )

    return factory


@pytest.fixture
def long_document() -> str:
    """About 3000 characters of short, distinct sentences."""
    return " ".join(
        f"Sentence number {i} describes item {i * 7} in the warehouse."
        for i in range(55)
    )
