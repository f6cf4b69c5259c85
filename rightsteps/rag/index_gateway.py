"""Gateway between document chunks and the vector store.

Handles:
- Embedding chunks (concurrently, bounded) and building index records
- Similarity queries mapped to retrieval results
- Bulk deletion of a document's chunks by file name
"""
import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional
import structlog

from rightsteps import config
from rightsteps.errors import IndexDeleteError, IndexQueryError, IndexWriteError
from rightsteps.rag.chunker import Chunk, chunk_id
from rightsteps.rag.embedder import EmbeddingClient
from rightsteps.rag.store_faiss import IndexRecord

logger = structlog.get_logger()


@dataclass
class RetrievalResult:
    """A single retrieved chunk with its similarity score."""

    text: str
    file_name: str
    chunk_index: int
    score: float
    id: str = ""

    def to_source(self) -> dict:
        """Provenance entry returned to API callers."""
        return {
            "file_name": self.file_name,
            "chunk_index": self.chunk_index,
            "score": round(self.score, 3),
        }


class VectorIndexGateway:
    """Upsert, query and delete document chunks in a vector store.

    ``store`` must provide async ``upsert(records)``, ``query(vector, top_k,
    filter=..., include_metadata=..., include_values=...)`` and
    ``delete_many(filter)`` (see ``FAISSVectorStore``).
    """

    def __init__(
        self,
        store,
        embedder: EmbeddingClient,
        max_concurrency: int = None,
    ):
        self.store = store
        self.embedder = embedder
        self.max_concurrency = max_concurrency or config.EMBEDDING_CONCURRENCY

    async def _embed_all(self, texts: List[str]) -> List[List[float]]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def embed_one(text: str) -> List[float]:
            async with semaphore:
                return await self.embedder.embed(text)

        tasks = [asyncio.ensure_future(embed_one(text)) for text in texts]
        try:
            # gather preserves input order
            return await asyncio.gather(*tasks)
        finally:
            # Cancel siblings still waiting on the model after a failure
            for task in tasks:
                if not task.done():
                    task.cancel()

    async def upsert(self, chunks: List[Chunk], file_name: str) -> int:
        """Embed and upsert a document's chunks.

        Record ids are ``{file_name}_chunk_{chunk_index}``; re-uploading the
        same file name overwrites records with matching ids.

        Returns:
            Number of records written

        Raises:
            IndexWriteError: If any embedding or the store write fails.
                Records already sent to the store are not rolled back.
        """
        if not chunks:
            return 0

        uploaded_at = datetime.now(timezone.utc).isoformat()

        try:
            embeddings = await self._embed_all([chunk.text for chunk in chunks])

            records = [
                IndexRecord(
                    id=chunk_id(file_name, chunk.chunk_index),
                    values=embedding,
                    metadata={
                        "text": chunk.text,
                        "file_name": file_name,
                        "chunk_index": chunk.chunk_index,
                        "size": chunk.size,
                        "uploaded_at": uploaded_at,
                    },
                )
                for chunk, embedding in zip(chunks, embeddings)
            ]

            written = await self.store.upsert(records)

        except Exception as e:
            logger.error(
                "chunk_upsert_failed",
                file_name=file_name,
                chunk_count=len(chunks),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise IndexWriteError("Failed to upsert chunks", e) from e

        logger.info("chunks_upserted", file_name=file_name, count=written)

        return written

    async def query(
        self,
        query_text: str,
        top_k: int,
        file_name: Optional[str] = None,
    ) -> List[RetrievalResult]:
        """Find the chunks most similar to ``query_text``.

        Args:
            query_text: Text to embed and search with
            top_k: Maximum number of results
            file_name: Restrict results to one document

        Returns:
            Results ordered by descending similarity (may be fewer than top_k)

        Raises:
            IndexQueryError: On embedding or store failure
        """
        filter = {"file_name": {"$eq": file_name}} if file_name else None

        try:
            vector = await self.embedder.embed(query_text)
            matches = await self.store.query(
                vector,
                top_k=top_k,
                filter=filter,
                include_metadata=True,
                include_values=False,
            )
        except Exception as e:
            logger.error(
                "chunk_query_failed",
                query_preview=query_text[:100],
                error=str(e),
                error_type=type(e).__name__,
            )
            raise IndexQueryError("Failed to search similar chunks", e) from e

        results = [
            RetrievalResult(
                text=match.metadata.get("text", ""),
                file_name=match.metadata.get("file_name", ""),
                chunk_index=int(match.metadata.get("chunk_index", 0)),
                score=float(match.score),
                id=match.id,
            )
            for match in matches
        ]

        logger.debug("chunk_query_completed", results_found=len(results))

        return results

    async def delete_by_file_name(self, file_name: str, from_chunk_index: int = 0) -> None:
        """Remove every chunk stored under ``file_name`` (idempotent).

        With ``from_chunk_index`` only chunks at or past that index are removed,
        which drops the stale tail left by a shorter re-upload.

        Raises:
            IndexDeleteError: On store failure
        """
        try:
            filter = {"file_name": {"$eq": file_name}}
            if from_chunk_index:
                filter["chunk_index"] = {"$gte": from_chunk_index}
            removed = await self.store.delete_many(filter)
        except Exception as e:
            logger.error(
                "document_delete_failed",
                file_name=file_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise IndexDeleteError("Failed to delete document chunks", e) from e

        logger.info(
            "document_chunks_deleted",
            file_name=file_name,
            from_chunk_index=from_chunk_index,
            removed=removed,
        )
