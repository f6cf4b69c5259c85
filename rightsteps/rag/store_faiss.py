"""FAISS vector store with string record ids and metadata filtering.

Exposes the vector-store capability used by the index gateway:

- ``upsert(records)``: insert or overwrite records by id
- ``query(vector, top_k, filter=None, include_metadata=True, include_values=False)``
- ``delete_many(filter)``: bulk delete by metadata filter

Cosine similarity is computed as inner product over L2-normalised vectors
(``IndexFlatIP`` wrapped in ``IndexIDMap2`` so records can be removed).
"""
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import numpy as np
import faiss
import structlog

from rightsteps import config

logger = structlog.get_logger()

INDEX_TYPE = "IndexIDMap2(IndexFlatIP)"
METRIC = "cosine"


@dataclass
class IndexRecord:
    """A persisted unit: id, embedding and metadata."""

    id: str
    values: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryMatch:
    """A single similarity match returned by ``query``."""

    id: str
    score: float
    metadata: Optional[Dict[str, Any]] = None
    values: Optional[List[float]] = None


def matches_filter(metadata: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    """Evaluate a metadata filter.

    Supports plain equality (``{"file_name": "a.md"}``) and the ``$eq`` /
    ``$ne`` / ``$in`` / ``$gte`` operators (``{"file_name": {"$eq": "a.md"}}``).
    """
    if not filter:
        return True

    for key, condition in filter.items():
        value = metadata.get(key)
        if isinstance(condition, dict):
            for op, expected in condition.items():
                if op == "$eq" and value != expected:
                    return False
                if op == "$ne" and value == expected:
                    return False
                if op == "$in" and value not in expected:
                    return False
                if op == "$gte" and (value is None or value < expected):
                    return False
                if op not in ("$eq", "$ne", "$in", "$gte"):
                    raise ValueError(f"Unsupported filter operator: {op}")
        elif value != condition:
            return False

    return True


def _normalize(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return vectors / norms


class FAISSVectorStore:
    """Exact cosine-similarity vector store backed by FAISS."""

    def __init__(
        self,
        dimension: int = None,
        index_dir: Optional[Path] = None,
    ):
        """Initialize the FAISS vector store.

        Args:
            dimension: Embedding dimension (default from config)
            index_dir: Directory for index and metadata files; None keeps the
                store in memory only
        """
        self.dimension = dimension or config.EMBEDDING_DIMENSION
        self.index_dir = Path(index_dir) if index_dir is not None else None

        self.index: Optional[faiss.Index] = None
        # record id -> {"vector_id": int, "metadata": {...}}
        self.records: Dict[str, Dict[str, Any]] = {}
        self._ids_by_vector: Dict[int, str] = {}
        self._next_vector_id = 0

        logger.info(
            "faiss_store_initialized",
            index_dir=str(self.index_dir) if self.index_dir else None,
            dimension=self.dimension,
        )

    @property
    def index_path(self) -> Optional[Path]:
        return self.index_dir / "vectors.index" if self.index_dir else None

    @property
    def metadata_path(self) -> Optional[Path]:
        return self.index_dir / "metadata.json" if self.index_dir else None

    @property
    def persistent(self) -> bool:
        return self.index_dir is not None

    def init_new_index(self) -> None:
        """Initialize a new, empty FAISS index."""
        self.index = faiss.IndexIDMap2(faiss.IndexFlatIP(self.dimension))
        self.records = {}
        self._ids_by_vector = {}
        self._next_vector_id = 0

        logger.info(
            "faiss_index_initialized",
            dimension=self.dimension,
            index_type=INDEX_TYPE,
        )

    def load_index(self) -> None:
        """Load existing FAISS index and record metadata from disk.

        Raises:
            FileNotFoundError: If index files don't exist
            ValueError: If dimension mismatch detected
            RuntimeError: If loading fails
        """
        if not self.persistent:
            raise RuntimeError("Store has no index directory to load from")

        if not self.index_path.exists():
            raise FileNotFoundError(f"Index not found: {self.index_path}")

        if not self.metadata_path.exists():
            raise FileNotFoundError(f"Metadata not found: {self.metadata_path}")

        try:
            with open(self.metadata_path, "r", encoding="utf-8") as f:
                stored = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise RuntimeError(f"Failed to load metadata: {e}") from e

        stored_dim = stored.get("embedding_dimension")
        if stored_dim != self.dimension:
            raise ValueError(
                f"Dimension mismatch: index was built with dim={stored_dim}, "
                f"but the embedding model has dim={self.dimension}. "
                "Please rebuild the index."
            )

        try:
            self.index = faiss.read_index(str(self.index_path))
        except RuntimeError as e:
            raise RuntimeError(f"Failed to load FAISS index: {e}") from e

        self.records = stored.get("records", {})
        self._ids_by_vector = {
            entry["vector_id"]: record_id for record_id, entry in self.records.items()
        }
        self._next_vector_id = stored.get("next_vector_id", len(self.records))

        logger.info(
            "faiss_index_loaded",
            dimension=self.dimension,
            vector_count=self.index.ntotal,
        )

    def save_index(self) -> None:
        """Save FAISS index and record metadata to disk (no-op when in memory).

        Raises:
            RuntimeError: If save fails
        """
        if not self.persistent:
            return

        if self.index is None:
            raise RuntimeError("No index to save. Initialize or load an index first.")

        self.index_dir.mkdir(parents=True, exist_ok=True)

        try:
            faiss.write_index(self.index, str(self.index_path))
        except RuntimeError as e:
            raise RuntimeError(f"Failed to save FAISS index: {e}") from e

        stored = {
            "embedding_dimension": self.dimension,
            "index_type": INDEX_TYPE,
            "metric": METRIC,
            "vector_count": self.index.ntotal,
            "next_vector_id": self._next_vector_id,
            "records": self.records,
        }

        try:
            with open(self.metadata_path, "w", encoding="utf-8") as f:
                json.dump(stored, f, indent=2)
        except OSError as e:
            raise RuntimeError(f"Failed to save metadata: {e}") from e

        logger.info(
            "faiss_index_saved",
            index_path=str(self.index_path),
            vector_count=self.index.ntotal,
        )

    def init_or_load(self) -> None:
        """Load the index from disk if present, otherwise create a new one."""
        if self.persistent and self.index_path.exists() and self.metadata_path.exists():
            logger.info("existing_index_detected", path=str(self.index_path))
            self.load_index()
        else:
            logger.info("no_index_found_initializing_new")
            self.init_new_index()

    def _require_index(self) -> faiss.Index:
        if self.index is None:
            raise RuntimeError("No index initialized. Call init_or_load() first.")
        return self.index

    def _as_matrix(self, vectors: List[List[float]]) -> np.ndarray:
        matrix = np.array(vectors, dtype=np.float32)
        if matrix.ndim != 2 or matrix.shape[1] != self.dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimension}, "
                f"got {matrix.shape[-1] if matrix.ndim else 0}"
            )
        return _normalize(matrix)

    def _remove(self, record_ids: List[str]) -> int:
        vector_ids = [
            self.records[record_id]["vector_id"]
            for record_id in record_ids
            if record_id in self.records
        ]
        if not vector_ids:
            return 0

        self.index.remove_ids(np.array(vector_ids, dtype=np.int64))
        for vector_id in vector_ids:
            del self.records[self._ids_by_vector.pop(vector_id)]
        return len(vector_ids)

    async def upsert(self, records: List[IndexRecord]) -> int:
        """Insert records, overwriting any existing record with the same id.

        Returns:
            Number of records written
        """
        self._require_index()

        if not records:
            return 0

        # Last occurrence of an id within one batch wins
        latest: Dict[str, IndexRecord] = {record.id: record for record in records}
        batch = list(latest.values())

        matrix = self._as_matrix([record.values for record in batch])

        replaced = self._remove([record.id for record in batch])

        vector_ids = list(range(self._next_vector_id, self._next_vector_id + len(batch)))
        self._next_vector_id += len(batch)
        self.index.add_with_ids(matrix, np.array(vector_ids, dtype=np.int64))

        for record, vector_id in zip(batch, vector_ids):
            self.records[record.id] = {"vector_id": vector_id, "metadata": dict(record.metadata)}
            self._ids_by_vector[vector_id] = record.id

        self.save_index()

        logger.info(
            "vectors_upserted",
            count=len(batch),
            replaced=replaced,
            total_vectors=self.index.ntotal,
        )

        return len(batch)

    async def query(
        self,
        vector: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
        include_metadata: bool = True,
        include_values: bool = False,
    ) -> List[QueryMatch]:
        """Return up to ``top_k`` matches ranked by descending cosine similarity.

        Scores are clamped to [0, 1].
        """
        index = self._require_index()
        query_vector = self._as_matrix([vector])

        if filter:
            # Exact search over everything, then filter; fine for flat indexes
            k = index.ntotal
        else:
            k = min(top_k, index.ntotal)

        if k <= 0 or top_k <= 0:
            return []

        scores, vector_ids = index.search(query_vector, k)

        matches: List[QueryMatch] = []
        for score, vector_id in zip(scores[0].tolist(), vector_ids[0].tolist()):
            if vector_id < 0:
                continue

            record_id = self._ids_by_vector[vector_id]
            metadata = self.records[record_id]["metadata"]
            if not matches_filter(metadata, filter):
                continue

            matches.append(
                QueryMatch(
                    id=record_id,
                    score=max(0.0, min(1.0, float(score))),
                    metadata=dict(metadata) if include_metadata else None,
                    values=index.reconstruct(vector_id).tolist() if include_values else None,
                )
            )
            if len(matches) >= top_k:
                break

        logger.info(
            "vector_search_completed",
            top_k=top_k,
            filtered=bool(filter),
            results_found=len(matches),
        )

        return matches

    async def delete_many(self, filter: Dict[str, Any]) -> int:
        """Delete every record whose metadata matches ``filter``.

        Deleting with a filter that matches nothing is a no-op.

        Returns:
            Number of records removed
        """
        self._require_index()

        if not filter:
            raise ValueError("delete_many requires a non-empty filter")

        doomed = [
            record_id
            for record_id, entry in self.records.items()
            if matches_filter(entry["metadata"], filter)
        ]
        removed = self._remove(doomed)

        if removed:
            self.save_index()

        logger.info("vectors_deleted", removed=removed, total_vectors=self.index.ntotal)

        return removed

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the vector store."""
        if self.index is None:
            return {
                "initialized": False,
                "vector_count": 0,
                "dimension": self.dimension,
            }

        file_names = sorted(
            {
                entry["metadata"].get("file_name")
                for entry in self.records.values()
                if entry["metadata"].get("file_name")
            }
        )

        return {
            "initialized": True,
            "vector_count": self.index.ntotal,
            "dimension": self.dimension,
            "metric": METRIC,
            "documents": file_names,
            "index_exists_on_disk": bool(self.persistent and self.index_path.exists()),
        }
