"""Tests for the in-memory vector store and its filter language."""

import pytest
from lifeqa.common.schemas import RetrievedFragment


def _fragment(fid, owner="u1", data_type="health", **metadata):
    return RetrievedFragment(
        id=fid, score=0.0, owner_user_id=owner, data_type=data_type,
        text=f"fragment {fid}", metadata=metadata,
    )


@pytest.fixture
def store():
    from lifeqa.common.vector_store import InMemoryVectorStore
    s = InMemoryVectorStore()
    s.add(_fragment("h1"), [1.0, 0.0])
    s.add(_fragment("h2"), [0.6, 0.8])
    s.add(_fragment("l1", data_type="location", activity="gym"), [0.9, 0.1])
    s.add(_fragment("l2", data_type="location", activities=["Park", "walk"]), [0.0, 1.0])
    s.add(_fragment("o1", owner="u2", data_type="photo"), [1.0, 0.0])
    return s


class TestMatchesFilter:
    def test_empty_filter_matches(self):
        from lifeqa.common.vector_store import matches_filter
        assert matches_filter(_fragment("a"), None)
        assert matches_filter(_fragment("a"), {})

    def test_eq_and_ne(self):
        from lifeqa.common.vector_store import matches_filter
        f = _fragment("a", data_type="voice")
        assert matches_filter(f, {"dataType": {"$eq": "voice"}})
        assert not matches_filter(f, {"dataType": {"$eq": "health"}})
        assert matches_filter(f, {"dataType": {"$ne": "health"}})

    def test_in_and_nin(self):
        from lifeqa.common.vector_store import matches_filter
        f = _fragment("a", data_type="photo")
        assert matches_filter(f, {"dataType": {"$in": ["photo", "voice"]}})
        assert not matches_filter(f, {"dataType": {"$in": []}})
        assert not matches_filter(f, {"dataType": {"$nin": ["photo"]}})

    def test_and_or(self):
        from lifeqa.common.vector_store import matches_filter
        f = _fragment("a", data_type="location", activity="gym")
        assert matches_filter(f, {"$and": [
            {"dataType": {"$eq": "location"}},
            {"activity": {"$eq": "gym"}},
        ]})
        assert not matches_filter(f, {"$and": [
            {"dataType": {"$eq": "location"}},
            {"activity": {"$eq": "park"}},
        ]})
        assert matches_filter(f, {"$or": [
            {"dataType": {"$eq": "health"}},
            {"activity": "gym"},
        ]})

    def test_none_data_type_filter_matches_nothing(self):
        from lifeqa.query.privacy import NO_MATCH_FILTER
        from lifeqa.common.vector_store import matches_filter
        assert not matches_filter(_fragment("a", data_type="health"), NO_MATCH_FILTER)

    def test_unsupported_operator(self):
        from lifeqa.common.vector_store import matches_filter
        with pytest.raises(ValueError, match="Unsupported filter operator"):
            matches_filter(_fragment("a"), {"dataType": {"$gt": "a"}})


class TestInMemoryVectorStore:
    @pytest.mark.asyncio
    async def test_query_scopes_to_owners(self, store):
        results = await store.query([1.0, 0.0], ["u1"], top_k=10)
        assert {f.id for f in results} == {"h1", "h2", "l1", "l2"}
        assert all(f.owner_user_id == "u1" for f in results)

    @pytest.mark.asyncio
    async def test_query_sorted_by_score(self, store):
        results = await store.query([1.0, 0.0], ["u1", "u2"], top_k=10)
        scores = [f.score for f in results]
        assert scores == sorted(scores, reverse=True)
        assert results[0].score == pytest.approx(1.0)
        assert results[-1].id == "l2"
        assert results[-1].score == pytest.approx(0.0)

    @pytest.mark.asyncio
    async def test_query_top_k(self, store):
        results = await store.query([1.0, 0.0], ["u1"], top_k=2)
        assert [f.id for f in results] == ["h1", "l1"]

    @pytest.mark.asyncio
    async def test_query_with_filter(self, store):
        results = await store.query([1.0, 0.0], ["u1"], top_k=10, filter={"dataType": {"$eq": "health"}})
        assert [f.id for f in results] == ["h1", "h2"]
        assert results[1].score == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_stored_fragments_not_mutated(self, store):
        await store.query([1.0, 0.0], ["u1"], top_k=10)
        again = await store.query([0.0, 1.0], ["u1"], top_k=1)
        assert again[0].id == "l2"
        assert again[0].score == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_zero_top_k(self, store):
        assert await store.query([1.0, 0.0], ["u1"], top_k=0) == []

    @pytest.mark.asyncio
    async def test_query_by_activity(self, store):
        gym = await store.query_by_activity([1.0, 0.0], "u1", "Gym", top_k=5)
        assert [f.id for f in gym] == ["l1"]

        park = await store.query_by_activity([1.0, 0.0], "u1", "park", top_k=5)
        assert [f.id for f in park] == ["l2"]

        assert await store.query_by_activity([1.0, 0.0], "u2", "gym", top_k=5) == []

    def test_len(self, store):
        assert len(store) == 5
