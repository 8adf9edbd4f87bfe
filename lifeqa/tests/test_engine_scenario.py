"""
End-to-end scenarios for QueryEngine

Drives the whole pipeline with an in-memory vector store, a scripted chat
service and a dictionary-backed circle directory:

- Alice counts her gym visits from last week (12 tagged visits)
- The event store goes down mid-query
- A family circle where Bo hides locations and Carol never set consent
- Outsiders and failing dependencies
"""

import logging
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest

NOW = datetime(2025, 3, 12, 15, 30)  # Wednesday
QUERY_VECTOR = [1.0, 0.0, 0.0]


# ============================================================================
# In-memory collaborators
# ============================================================================

class FakeDirectory:
    """Circles, consent and names held in dictionaries"""

    def __init__(self, circles, settings, names):
        self.circles = circles
        self.settings = settings
        self.names = names
        self.settings_calls = []

    async def get_circle(self, circle_id):
        return self.circles.get(circle_id)

    async def get_privacy_settings(self, viewer_id, owner_ids):
        owner_ids = list(owner_ids)
        self.settings_calls.append((viewer_id, owner_ids))
        result = {}
        for owner_id in owner_ids:
            if (viewer_id, owner_id) in self.settings:
                result[owner_id] = self.settings[(viewer_id, owner_id)]
        return result

    async def get_display_name(self, user_id):
        from lifeqa.common.errors import AttributionLookupError

        if user_id not in self.names:
            raise AttributionLookupError(user_id)
        return self.names[user_id]


def add(store, id, owner, data_type, text, angle, **metadata):
    from lifeqa.common.schemas import RetrievedFragment

    store.add(
        RetrievedFragment(id=id, score=0.0, owner_user_id=owner, data_type=data_type,
                          text=text, metadata=metadata),
        [1.0, angle, 0.0],
    )


@pytest.fixture
def vector_store():
    from lifeqa.common.vector_store import InMemoryVectorStore

    store = InMemoryVectorStore()
    last_week_start = datetime(2025, 3, 2, 7, 0)
    for i in range(12):
        visit = last_week_start + timedelta(hours=12 * i)
        add(store, f"gym-{i}", "alice", "location", f"Visited PureGym (visit {i + 1})",
            0.05 * i, activity="gym", date=visit.isoformat())
    for i in range(3):
        add(store, f"steps-{i}", "alice", "health", f"{8000 + i * 500} steps", 0.3 + 0.1 * i)
    add(store, "b-loc", "bob", "location", "Bo at the climbing gym", 0.1)
    add(store, "b-health", "bob", "health", "Bo slept 7 hours", 0.2)
    add(store, "b-voice", "bob", "voice", "Bo's voice memo", 0.1)
    add(store, "c-health", "carol", "health", "Carol ran 5 km", 0.1)
    add(store, "d-loc", "dave", "location", "Dave at the park", 0.15)
    return store


@pytest.fixture
def embedding_service():
    service = Mock()
    service.embed = AsyncMock(return_value=QUERY_VECTOR)
    return service


@pytest.fixture
def chat_service():
    from lifeqa.common.protocols import ChatCompletion

    service = Mock()
    service.provider = "openai"
    completion = ChatCompletion(text="You went to the gym 12 times last week.", model="gpt-4o-2024-08-06",
                                input_tokens=1200, output_tokens=40)
    service.complete = AsyncMock(return_value=completion)
    service.complete_with_system_prompt = AsyncMock(return_value=completion)
    return service


@pytest.fixture
def event_store():
    from lifeqa.common.schemas import ExtractedEvent

    store = Mock()
    store.get_events = AsyncMock(return_value=[
        ExtractedEvent(id="e1", title="Badminton with Sam", occurs_at=datetime(2025, 3, 6, 19, 0), confidence=0.9),
    ])
    return store


@pytest.fixture
def directory():
    from lifeqa.common.schemas import Circle, FriendPrivacySettings, SharingPolicy
    from lifeqa.query.privacy import default_privacy_settings

    family = Circle(
        id="family",
        name="Family",
        member_ids={"alice", "bob", "carol", "dave"},
        data_sharing=SharingPolicy(share_location=True, share_health=True),
    )
    settings = {
        ("alice", "bob"): FriendPrivacySettings(share_location=False, share_health=True),
        ("alice", "dave"): default_privacy_settings(),
    }
    # Dave's name lookup fails
    names = {"alice": "Alice", "bob": "Bo", "carol": "Carol"}
    return FakeDirectory({"family": family}, settings, names)


@pytest.fixture
def engine(embedding_service, vector_store, chat_service, event_store, directory):
    from lifeqa.query.engine import QueryEngine
    return QueryEngine(
        embedding_service=embedding_service,
        vector_store=vector_store,
        chat_service=chat_service,
        event_store=event_store,
        directory=directory,
    )


# ============================================================================
# Personal queries
# ============================================================================

class TestGymCountScenario:

    @pytest.mark.asyncio
    async def test_counting_query_end_to_end(self, engine, chat_service, event_store):
        result = await engine.query("how many times did I go to the gym last week?", "alice", now=NOW)

        messages, context, meta = chat_service.complete.await_args.args
        assert context.startswith("Total location found: 12")
        assert "COUNTING query" in context
        assert "[Event 1] (90% confidence)" in context
        assert len(result.context_used) == 12
        assert all(ref.data_type == "location" for ref in result.context_used)
        assert result.response_text == "You went to the gym 12 times last week."

        start, end = event_store.get_events.await_args.args[1:3]
        assert start == datetime(2025, 3, 2)
        assert end == datetime(2025, 3, 8, 23, 59, 59, 999000)

    @pytest.mark.asyncio
    async def test_context_used_is_ranked(self, engine):
        result = await engine.query("how many times did I go to the gym last week?", "alice", now=NOW)

        scores = [ref.score for ref in result.context_used]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_provider_accounting(self, engine):
        result = await engine.query("how many times did I go to the gym last week?", "alice", now=NOW)

        info = result.provider_info
        assert info.provider_id == "openai"
        assert info.model == "gpt-4o-2024-08-06"
        assert info.estimated_cost_usd == pytest.approx(1200 / 1e6 * 5.0 + 40 / 1e6 * 15.0)

    @pytest.mark.asyncio
    async def test_event_store_outage_still_answers(self, engine, event_store, chat_service, caplog):
        event_store.get_events.side_effect = ConnectionError("event store unreachable")

        with caplog.at_level(logging.WARNING, logger="lifeqa.query.retriever"):
            result = await engine.query("how many times did I go to the gym last week?", "alice", now=NOW)

        assert len(result.context_used) == 12
        assert result.response_text
        context = chat_service.complete.await_args.args[1]
        assert "[Event" not in context
        assert "Event store lookup failed" in caplog.text

    @pytest.mark.asyncio
    async def test_only_own_data_is_searched(self, engine):
        result = await engine.query("where was I?", "alice", now=NOW)

        assert {ref.id for ref in result.context_used} <= {f"gym-{i}" for i in range(12)}

    @pytest.mark.asyncio
    async def test_no_data_tells_generator_to_say_so(self, engine, chat_service, event_store):
        from lifeqa.query.context_builder import INSUFFICIENT_DATA_MESSAGE

        result = await engine.query("what did I say in my voice memo?", "alice", now=NOW)

        assert result.context_used == []
        assert chat_service.complete.await_args.args[1] == INSUFFICIENT_DATA_MESSAGE

    @pytest.mark.asyncio
    async def test_history_is_forwarded(self, engine, chat_service):
        from lifeqa.common.schemas import ChatMessage

        history = [ChatMessage(role="user", content="hi"), ChatMessage(role="assistant", content="hello")]

        await engine.query("how many steps?", "alice", conversation_history=history, now=NOW)

        messages = chat_service.complete.await_args.args[0]
        assert [m.content for m in messages] == ["hi", "hello", "how many steps?"]

    @pytest.mark.asyncio
    async def test_summary_is_logged(self, engine, caplog):
        with caplog.at_level(logging.INFO, logger="lifeqa.query.engine"):
            await engine.query("how many times did I go to the gym last week?", "alice", now=NOW)

        assert "query complete: 12 fragments" in caplog.text
        assert "temporal=last week" in caplog.text
        assert "gym" not in caplog.text.split("query complete")[1].split("\n")[0]


class TestFailures:

    @pytest.mark.asyncio
    async def test_embedding_failure_is_explicit(self, engine, embedding_service, chat_service):
        from lifeqa.common.errors import DependencyError

        embedding_service.embed.side_effect = RuntimeError("embedding API 500")

        with pytest.raises(DependencyError) as exc_info:
            await engine.query("how many steps?", "alice", now=NOW)

        assert exc_info.value.service == "embedding"
        chat_service.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_chat_failure_is_explicit(self, engine, chat_service):
        from lifeqa.common.errors import DependencyError

        chat_service.complete.side_effect = RuntimeError("LLM client is not available")

        with pytest.raises(DependencyError) as exc_info:
            await engine.query("how many steps?", "alice", now=NOW)

        assert exc_info.value.service == "chat_completion"


# ============================================================================
# Forced-mode queries
# ============================================================================

class TestForcedModes:

    @pytest.mark.asyncio
    async def test_query_by_data_type(self, engine):
        from lifeqa.common.schemas import DataType

        result = await engine.query_by_data_type("how active was I", "alice", DataType.HEALTH)

        assert {ref.id for ref in result.context_used} == {"steps-0", "steps-1", "steps-2"}

    @pytest.mark.asyncio
    async def test_query_by_activity(self, engine):
        result = await engine.query_by_activity("gym visits", "alice", "GYM")

        assert len(result.context_used) == 12

    @pytest.mark.asyncio
    async def test_answer_dispatches_query_model(self, engine):
        from lifeqa.common.schemas import Query

        result = await engine.answer(Query(text="how many steps?", user_id="alice"), now=NOW)

        assert {ref.id for ref in result.context_used} == {"steps-0", "steps-1", "steps-2"}


# ============================================================================
# Circle queries
# ============================================================================

class TestFamilyCircleScenario:

    @pytest.mark.asyncio
    async def test_effective_sharing_applied(self, engine):
        result = await engine.query_circle("what has everyone been up to?", "family", "alice", now=NOW)

        ids = {ref.id for ref in result.context_used}
        # Bo hides locations, Carol has no consent record, voice is not shared by the circle
        assert "b-loc" not in ids
        assert "c-health" not in ids
        assert "b-voice" not in ids
        assert {"b-health", "d-loc"} <= ids
        assert {f"gym-{i}" for i in range(12)} <= ids

    @pytest.mark.asyncio
    async def test_attribution_labels(self, engine, chat_service):
        await engine.query_circle("what did Bo and Dave do?", "family", "alice", now=NOW)

        messages, context, system_prompt, meta = chat_service.complete_with_system_prompt.await_args.args
        assert context.startswith('Circle "Family" Data (4 members,')
        assert "[You]" in context
        assert "[Bo] Bo slept 7 hours" in context
        assert "[Circle Member] Dave at the park" in context
        assert 'friend circle called "Family" with 4 members' in system_prompt

    @pytest.mark.asyncio
    async def test_references_carry_owner(self, engine):
        result = await engine.query_circle("what did Bo do?", "family", "alice", now=NOW)

        owners = {ref.id: ref.owner_user_id for ref in result.context_used}
        assert owners["b-health"] == "bob"

    @pytest.mark.asyncio
    async def test_consent_requested_for_other_members_only(self, engine, directory):
        await engine.query_circle("anything new?", "family", "alice", now=NOW)

        viewer, owners = directory.settings_calls[0]
        assert viewer == "alice"
        assert owners == ["bob", "carol", "dave"]

    @pytest.mark.asyncio
    async def test_non_member_is_rejected_before_retrieval(self, engine, embedding_service, vector_store):
        from lifeqa.common.errors import AuthorizationError

        with pytest.raises(AuthorizationError) as exc_info:
            await engine.query_circle("what did they do?", "family", "mallory", now=NOW)

        assert exc_info.value.circle_id == "family"
        embedding_service.embed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_circle_is_rejected(self, engine):
        from lifeqa.common.errors import AuthorizationError

        with pytest.raises(AuthorizationError):
            await engine.query_circle("hello", "no-such-circle", "alice", now=NOW)

    @pytest.mark.asyncio
    async def test_directory_failure_is_fatal(self, engine, directory):
        from lifeqa.common.errors import DependencyError

        directory.get_privacy_settings = AsyncMock(side_effect=ConnectionError("directory down"))

        with pytest.raises(DependencyError) as exc_info:
            await engine.query_circle("hello", "family", "alice", now=NOW)

        assert exc_info.value.service == "directory"

    @pytest.mark.asyncio
    async def test_embedding_failure_cancels_consent_lookup(self, engine, directory, embedding_service):
        import asyncio
        from lifeqa.common.errors import DependencyError

        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def slow_settings(viewer_id, owner_ids):
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            raise ConnectionError("directory down")

        async def failing_embed(*args, **kwargs):
            await started.wait()
            raise RuntimeError("embedding API 500")

        directory.get_privacy_settings = slow_settings
        embedding_service.embed = AsyncMock(side_effect=failing_embed)

        with pytest.raises(DependencyError) as exc_info:
            await engine.query_circle("hello", "family", "alice", now=NOW)

        assert exc_info.value.service == "embedding"
        await asyncio.wait_for(cancelled.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_missing_directory(self, embedding_service, vector_store, chat_service):
        from lifeqa.common.errors import DependencyError
        from lifeqa.query.engine import QueryEngine

        engine = QueryEngine(embedding_service, vector_store, chat_service)

        with pytest.raises(DependencyError):
            await engine.query_circle("hello", "family", "alice", now=NOW)

    @pytest.mark.asyncio
    async def test_display_name_failures_degrade(self, engine, caplog):
        with caplog.at_level(logging.WARNING, logger="lifeqa.query.engine"):
            names = await engine.resolve_display_names(["bob", "dave"])

        assert names == {"bob": "Bo", "dave": "Circle Member"}
        assert "Display name lookup failed for dave" in caplog.text


class TestConstruction:

    def test_from_config_builds_bundled_clients(self):
        from lifeqa.common.config import EngineConfig
        from lifeqa.common.embedding_service import EmbeddingService
        from lifeqa.common.llm_client import LLMClient
        from lifeqa.common.vector_store import InMemoryVectorStore
        from lifeqa.query.engine import QueryEngine

        engine = QueryEngine.from_config(EngineConfig(), InMemoryVectorStore())

        assert isinstance(engine.retriever.embedding_service, EmbeddingService)
        assert isinstance(engine.generator.chat_service, LLMClient)
        assert engine.context_builder.max_length == 8000
