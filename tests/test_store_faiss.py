"""Tests for the FAISS-backed vector store."""
import json

import pytest

from rightsteps.rag.store_faiss import FAISSVectorStore, IndexRecord, matches_filter

DIM = 8


def unit(i: int, dim: int = DIM):
    vector = [0.0] * dim
    vector[i] = 1.0
    return vector


def record(record_id: str, vector, file_name: str = "a.md", **extra):
    metadata = {"text": record_id, "file_name": file_name}
    metadata.update(extra)
    return IndexRecord(id=record_id, values=vector, metadata=metadata)


@pytest.fixture
def small_store():
    store = FAISSVectorStore(dimension=DIM)
    store.init_new_index()
    return store


class TestMatchesFilter:

    def test_equality_forms(self):
        metadata = {"file_name": "a.md", "chunk_index": 1}
        assert matches_filter(metadata, None)
        assert matches_filter(metadata, {"file_name": "a.md"})
        assert matches_filter(metadata, {"file_name": {"$eq": "a.md"}})
        assert not matches_filter(metadata, {"file_name": {"$eq": "b.md"}})
        assert matches_filter(metadata, {"file_name": {"$ne": "b.md"}})
        assert matches_filter(metadata, {"chunk_index": {"$in": [0, 1]}})

    def test_gte(self):
        assert matches_filter({"chunk_index": 2}, {"chunk_index": {"$gte": 2}})
        assert not matches_filter({"chunk_index": 1}, {"chunk_index": {"$gte": 2}})
        assert not matches_filter({}, {"chunk_index": {"$gte": 0}})

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValueError):
            matches_filter({"x": 1}, {"x": {"$gt": 0}})


class TestUpsertAndQuery:

    @pytest.mark.asyncio
    async def test_query_ranks_by_cosine_similarity(self, small_store):
        await small_store.upsert([
            record("r0", unit(0)),
            record("r1", unit(1)),
            record("mix", [1.0, 1.0] + [0.0] * (DIM - 2)),
        ])

        matches = await small_store.query(unit(0), top_k=3)

        assert [m.id for m in matches] == ["r0", "mix", "r1"]
        assert matches[0].score == pytest.approx(1.0, abs=1e-5)
        assert matches[1].score == pytest.approx(0.7071, abs=1e-3)
        assert matches[2].score == 0.0
        assert matches[0].metadata["text"] == "r0"
        assert matches[0].values is None

    @pytest.mark.asyncio
    async def test_scores_are_scale_invariant(self, small_store):
        await small_store.upsert([record("r0", [5.0] + [0.0] * (DIM - 1))])

        matches = await small_store.query([0.1] + [0.0] * (DIM - 1), top_k=1)

        assert matches[0].score == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.asyncio
    async def test_returns_fewer_than_top_k(self, small_store):
        await small_store.upsert([record("r0", unit(0))])

        matches = await small_store.query(unit(0), top_k=5)

        assert len(matches) == 1

    @pytest.mark.asyncio
    async def test_empty_index_returns_nothing(self, small_store):
        assert await small_store.query(unit(0), top_k=3) == []

    @pytest.mark.asyncio
    async def test_same_id_overwrites(self, small_store):
        await small_store.upsert([record("r0", unit(0))])
        await small_store.upsert([record("r0", unit(1), text="new")])

        assert small_store.index.ntotal == 1
        matches = await small_store.query(unit(1), top_k=1)
        assert matches[0].id == "r0"
        assert matches[0].metadata["text"] == "new"
        assert matches[0].score == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.asyncio
    async def test_duplicate_ids_in_one_batch_keep_last(self, small_store):
        written = await small_store.upsert([
            record("r0", unit(0), text="first"),
            record("r0", unit(2), text="second"),
        ])

        assert written == 1
        matches = await small_store.query(unit(2), top_k=1)
        assert matches[0].metadata["text"] == "second"

    @pytest.mark.asyncio
    async def test_filter_restricts_results(self, small_store):
        await small_store.upsert([
            record("a0", unit(0), file_name="a.md"),
            record("b0", [0.9, 0.1] + [0.0] * (DIM - 2), file_name="b.md"),
            record("b1", unit(3), file_name="b.md"),
        ])

        matches = await small_store.query(unit(0), top_k=5, filter={"file_name": {"$eq": "b.md"}})

        assert [m.id for m in matches] == ["b0", "b1"]

    @pytest.mark.asyncio
    async def test_include_values(self, small_store):
        await small_store.upsert([record("r0", [2.0] + [0.0] * (DIM - 1))])

        matches = await small_store.query(unit(0), top_k=1, include_values=True, include_metadata=False)

        assert matches[0].metadata is None
        assert matches[0].values == pytest.approx(unit(0))

    @pytest.mark.asyncio
    async def test_dimension_mismatch_rejected(self, small_store):
        with pytest.raises(ValueError):
            await small_store.upsert([record("r0", [1.0, 0.0])])

        with pytest.raises(ValueError):
            await small_store.query([1.0, 0.0], top_k=1)

    @pytest.mark.asyncio
    async def test_uninitialized_store_raises(self):
        store = FAISSVectorStore(dimension=DIM)
        with pytest.raises(RuntimeError):
            await store.query(unit(0), top_k=1)


class TestDeleteMany:

    @pytest.mark.asyncio
    async def test_removes_only_matching_records(self, small_store):
        await small_store.upsert([
            record("a0", unit(0), file_name="a.md"),
            record("a1", unit(1), file_name="a.md"),
            record("b0", unit(2), file_name="b.md"),
        ])

        removed = await small_store.delete_many({"file_name": {"$eq": "a.md"}})

        assert removed == 2
        assert small_store.index.ntotal == 1
        matches = await small_store.query(unit(0), top_k=3)
        assert [m.id for m in matches] == ["b0"]

    @pytest.mark.asyncio
    async def test_deleting_unknown_file_is_noop(self, small_store):
        await small_store.upsert([record("a0", unit(0))])

        assert await small_store.delete_many({"file_name": "missing.md"}) == 0
        assert small_store.index.ntotal == 1

    @pytest.mark.asyncio
    async def test_empty_filter_rejected(self, small_store):
        with pytest.raises(ValueError):
            await small_store.delete_many({})


class TestPersistence:

    @pytest.mark.asyncio
    async def test_save_and_load_round_trip(self, tmp_path):
        store = FAISSVectorStore(dimension=DIM, index_dir=tmp_path)
        store.init_or_load()
        await store.upsert([record("a0", unit(0)), record("a1", unit(1))])
        await store.delete_many({"file_name": {"$eq": "none"}})

        reloaded = FAISSVectorStore(dimension=DIM, index_dir=tmp_path)
        reloaded.init_or_load()

        assert reloaded.index.ntotal == 2
        matches = await reloaded.query(unit(1), top_k=1)
        assert matches[0].id == "a1"

        # New ids after reload must not collide with stored ones
        await reloaded.upsert([record("a2", unit(2))])
        assert reloaded.index.ntotal == 3
        assert (await reloaded.query(unit(0), top_k=1))[0].id == "a0"

        stored = json.loads((tmp_path / "metadata.json").read_text())
        assert stored["metric"] == "cosine"
        assert stored["embedding_dimension"] == DIM

    @pytest.mark.asyncio
    async def test_dimension_mismatch_on_load(self, tmp_path):
        store = FAISSVectorStore(dimension=DIM, index_dir=tmp_path)
        store.init_new_index()
        store.save_index()

        with pytest.raises(ValueError):
            FAISSVectorStore(dimension=DIM * 2, index_dir=tmp_path).load_index()

    def test_in_memory_store_does_not_write(self, small_store):
        small_store.save_index()
        assert small_store.get_stats()["index_exists_on_disk"] is False

    @pytest.mark.asyncio
    async def test_stats_list_documents(self, small_store):
        await small_store.upsert([
            record("a0", unit(0), file_name="a.md"),
            record("b0", unit(1), file_name="b.md"),
        ])

        stats = small_store.get_stats()

        assert stats["vector_count"] == 2
        assert stats["documents"] == ["a.md", "b.md"]
