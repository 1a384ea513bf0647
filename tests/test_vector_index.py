"""
End-to-end tests for VectorIndex: idempotence, capacity, scoring,
degraded mode and recovery after the database is removed.
"""

import asyncio
import os

import numpy as np
import pytest

from newsvec.vector.embeddings import DeterministicHashEmbedding
from newsvec.vector.index import VectorIndex
from newsvec.vector.store import InMemoryRecordStore, SQLiteRecordStore
from vector_helpers import DIM, at_similarity, basis, make_item

HEADLINES = [
    make_item("Iran sanctions debate intensifies in Washington", source="Reuters",
              url="https://example.com/1", published_at=1_700_000_000_000 - 86_400_000),
    make_item("Ukraine frontline positions shift near Bakhmut", source="AP",
              url="https://example.com/2", published_at=1_700_000_000_000 - 172_800_000),
    make_item("China trade talks resume with EU delegation", source="BBC",
              url="https://example.com/3", published_at=1_700_000_000_000 - 259_200_000),
]


@pytest.fixture
def index(db_path, fake_clock):
    vector_index = VectorIndex(SQLiteRecordStore(db_path, capacity=5), dimension=DIM, clock=fake_clock)
    yield vector_index
    vector_index.shutdown()


@pytest.fixture
def text_index(db_path):
    """Index backed by the hash embedding provider at the default dimension."""
    vector_index = VectorIndex(SQLiteRecordStore(db_path), dimension=384,
                               embedding_provider=DeterministicHashEmbedding(dimension=384))
    yield vector_index
    vector_index.shutdown()


@pytest.fixture
def degraded_index(tmp_path):
    blocker = tmp_path / "occupied"
    blocker.write_text("not a directory")
    vector_index = VectorIndex(SQLiteRecordStore(str(blocker / "vectors.db")), dimension=DIM)
    yield vector_index
    vector_index.shutdown()


class TestIngestAndCount:

    @pytest.mark.asyncio
    async def test_idempotent_ingestion(self, index):
        item = make_item("Iran sanctions debate intensifies in Washington")

        assert await index.ingest([item], [basis(0)]) == 1
        assert await index.ingest([item], [basis(0)]) == 1
        assert await index.count() == 1

    @pytest.mark.asyncio
    async def test_partial_ingestion_is_not_an_error(self, index):
        items = [make_item("kept", url="u1"), make_item("   ", url="u2"), make_item("bad dim", url="u3")]
        stored = await index.ingest(items, [basis(0), basis(1), [1.0]])

        assert stored == 1
        assert await index.count() == 1

    @pytest.mark.asyncio
    async def test_ingest_report_exposes_drops(self, index):
        items = [make_item("kept", url="u1"), make_item("", url="u2"), make_item("bad dim", url="u3")]
        report = await index.ingest_report(items, [basis(0), basis(1), [1.0]])

        assert (report.requested, report.stored, report.dropped_empty, report.dropped_invalid) == (3, 1, 1, 1)

    @pytest.mark.asyncio
    async def test_handles_empty_urls(self, index):
        items = [
            make_item("Headline without a URL", source="Test", url=""),
            make_item("Another headline no URL", source="Test", url=""),
        ]
        assert await index.ingest(items, [basis(0), basis(1)]) == 2
        assert await index.count() == 2


class TestCapacity:

    @pytest.mark.asyncio
    async def test_count_never_exceeds_capacity(self, index):
        for batch in range(4):
            items = [make_item(f"batch {batch} item {i}", url=f"{batch}-{i}") for i in range(3)]
            await index.ingest(items, [basis(i) for i in range(3)])
            assert await index.count() <= 5

    @pytest.mark.asyncio
    async def test_evicted_record_unreachable_by_search(self, index):
        await index.ingest([make_item("earliest headline", url="first")], [basis(7)])
        fillers = [make_item(f"filler {i}", url=f"f{i}") for i in range(5)]
        await index.ingest(fillers, [basis(0)] * 5)

        hits = await index.search([basis(7)], top_k=20, min_score=0.5)
        assert hits == []
        assert await index.count() == 5


class TestSearch:

    @pytest.mark.asyncio
    async def test_multi_query_keeps_best_score(self, index):
        await index.ingest([make_item("Military operations expand in eastern regions")], [basis(0)])

        hits = await index.search([at_similarity(0.4), at_similarity(0.7)], top_k=5, min_score=0.3)

        assert len(hits) == 1
        assert hits[0].score == pytest.approx(0.7, abs=1e-6)

    @pytest.mark.asyncio
    async def test_threshold_filters_unrelated(self, index):
        await index.ingest([make_item("Weather forecast sunny skies tomorrow morning")], [basis(3)])

        assert await index.search([basis(4)], top_k=5, min_score=0.8) == []

    @pytest.mark.asyncio
    async def test_search_sees_state_at_its_queue_position(self, index):
        item = make_item("Iran sanctions debate", url="u1")

        _, before_reset, _, after = await asyncio.gather(
            index.ingest([item], [basis(0)]),
            index.search([basis(0)], top_k=5, min_score=0.5),
            index.reset(),
            index.search([basis(0)], top_k=5, min_score=0.5),
        )

        assert len(before_reset) == 1
        assert after == []

    @pytest.mark.asyncio
    async def test_ndarray_batches_for_ingest_and_search(self, index):
        batch = np.array([basis(0), basis(1)], dtype=np.float32)
        items = [make_item("first", url="u1"), make_item("second", url="u2")]

        assert await index.ingest(items, batch) == 2

        hits = await index.search(batch, top_k=5, min_score=0.3)
        assert sorted(h.text for h in hits) == ["first", "second"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("top_k,min_score", [
        (float("inf"), 0.3), (float("nan"), 0.3), (None, None), ("five", float("nan")),
    ])
    async def test_out_of_range_parameters_are_clamped(self, index, top_k, min_score):
        await index.ingest([make_item("Iran sanctions debate")], [basis(0)])

        hits = await index.search([basis(0)], top_k=top_k, min_score=min_score)

        assert [h.text for h in hits] == ["Iran sanctions debate"]


class TestReset:

    @pytest.mark.asyncio
    async def test_reset_clears_and_closes(self, index):
        await index.ingest([make_item("to be cleared")], [basis(0)])
        await index.reset()

        assert index.state == "closed"
        assert await index.count() == 0
        assert index.state == "open"

    @pytest.mark.asyncio
    async def test_close_keeps_records(self, index):
        await index.ingest([make_item("survives close")], [basis(0)])
        await index.close()

        assert index.state == "closed"
        assert await index.count() == 1


class TestDegradedMode:

    @pytest.mark.asyncio
    async def test_disabled_store_is_noop(self):
        vector_index = VectorIndex(None, dimension=DIM)

        assert await vector_index.ingest([make_item("test", source="Test", url="")], [basis(0)]) == 0
        assert await vector_index.search([basis(0)], top_k=5, min_score=0.3) == []
        assert await vector_index.count() == 0
        await vector_index.reset()
        assert vector_index.degraded is True

    @pytest.mark.asyncio
    async def test_unavailable_medium_is_noop(self, degraded_index):
        assert degraded_index.degraded is True
        assert await degraded_index.ingest([make_item("test", source="Test", url="")], [basis(0)]) == 0
        assert await degraded_index.search([basis(0)], top_k=5, min_score=0.3) == []
        assert await degraded_index.count() == 0
        await degraded_index.reset()

    @pytest.mark.asyncio
    async def test_health_reports_degraded(self, degraded_index):
        health = await degraded_index.health()
        assert health["status"] == "degraded"
        assert health["size"] == 0


class TestRecovery:

    @pytest.mark.asyncio
    async def test_recovers_after_database_removed(self, index, db_path):
        await index.ingest([make_item("Valid headline about economic policy", url="u1")], [basis(0)])
        assert await index.count() == 1

        os.remove(db_path)

        # May fail while the stale handle is dropped; must not raise
        await index.ingest([make_item("Headline during IDB disruption", source="Test", url="")], [basis(1)])

        await index.ingest([make_item("Recovery headline after IDB reset", source="AP", url="u3")], [basis(2)])
        assert await index.count() > 0

    @pytest.mark.asyncio
    async def test_stale_handle_fails_exactly_one_operation(self, index, db_path):
        await index.ingest([make_item("before removal")], [basis(0)])
        os.remove(db_path)

        assert await index.count() == 0
        assert await index.ingest([make_item("after removal")], [basis(0)]) == 1
        assert await index.count() == 1


class TestTextConvenience:

    @pytest.mark.asyncio
    async def test_end_to_end_headlines(self, text_index):
        assert await text_index.ingest_texts(HEADLINES) == 3
        assert await text_index.count() == 3

        hits = await text_index.search_texts(["Iran sanctions policy"], top_k=5, min_score=0.3)

        assert len(hits) >= 1
        assert "Iran" in hits[0].text
        assert hits[0].score >= 0.3

    @pytest.mark.asyncio
    async def test_end_to_end_with_precomputed_embeddings(self, text_index):
        embedder = DeterministicHashEmbedding(dimension=384)
        embeddings = embedder.embed_texts([item["text"] for item in HEADLINES])

        assert await text_index.ingest(HEADLINES, embeddings) == 3
        hits = await text_index.search([embedder.embed_text("Iran sanctions policy")], top_k=5, min_score=0.3)

        assert "Iran" in hits[0].text

    @pytest.mark.asyncio
    async def test_unrelated_query_above_high_threshold_is_empty(self, text_index):
        await text_index.ingest_texts([make_item("Weather forecast sunny skies tomorrow morning", source="Weather", url="")])

        hits = await text_index.search_texts(["Iran nuclear weapons program sanctions"], top_k=5, min_score=0.8)
        assert hits == []

    @pytest.mark.asyncio
    async def test_multi_query_text_search_dedupes(self, text_index):
        await text_index.ingest_texts([make_item("Military operations expand in eastern regions")])

        hits = await text_index.search_texts(["military operations", "eastern military expansion"], top_k=5, min_score=0.2)
        assert len(hits) == 1

    @pytest.mark.asyncio
    async def test_without_provider_returns_empty(self, index):
        assert await index.ingest_texts([make_item("no provider")]) == 0
        assert await index.search_texts(["no provider"]) == []

    @pytest.mark.asyncio
    async def test_provider_failure_degrades(self, db_path):
        class BrokenProvider(DeterministicHashEmbedding):
            def embed_texts(self, texts):
                raise RuntimeError("model not loaded")

        vector_index = VectorIndex(SQLiteRecordStore(db_path), dimension=384, embedding_provider=BrokenProvider())
        try:
            assert await vector_index.ingest_texts(HEADLINES) == 0
            assert await vector_index.search_texts(["test query"]) == []
        finally:
            vector_index.shutdown()


@pytest.mark.asyncio
async def test_independent_instances_do_not_share_state(tmp_path):
    first = VectorIndex(SQLiteRecordStore(str(tmp_path / "a.db")), dimension=DIM)
    second = VectorIndex(InMemoryRecordStore(), dimension=DIM)
    try:
        await first.ingest([make_item("only in first")], [basis(0)])
        assert await first.count() == 1
        assert await second.count() == 0
    finally:
        first.shutdown()
        second.shutdown()


@pytest.mark.asyncio
async def test_health_reports_size(index):
    await index.ingest([make_item("healthy")], [basis(0)])
    health = await index.health()

    assert health["status"] == "healthy"
    assert health["size"] == 1
    assert health["capacity"] == 5
    assert health["dimension"] == DIM


@pytest.mark.asyncio
async def test_async_context_manager_shuts_down(db_path):
    async with VectorIndex(SQLiteRecordStore(db_path), dimension=DIM) as vector_index:
        await vector_index.ingest([make_item("scoped")], [basis(0)])
    assert vector_index.state == "closed"
