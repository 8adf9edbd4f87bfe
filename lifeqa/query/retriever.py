"""
Retriever

Embeds the query, searches the vector store and, when the query carries a
time reference, looks up extracted events for the same date range.

Sequential depth is two external calls: embedding, then the vector query
with the event query running beside it. The event store is best-effort;
every other collaborator failure surfaces as DependencyError.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..common.config import RetrievalConfig
from ..common.errors import call_dependency
from ..common.protocols import (
    EmbeddingServiceProtocol,
    EventStoreProtocol,
    VectorStoreProtocol,
)
from ..common.schemas import Circle, DataType, ExtractedEvent, RetrievedFragment
from .intent import IntentAnalysis
from .privacy import build_circle_filter
from .temporal import TemporalIntent

logger = logging.getLogger("lifeqa.query.retriever")


@dataclass
class RetrievalResult:
    """Raw retrieval output, before privacy filtering and formatting"""
    fragments: List[RetrievedFragment] = field(default_factory=list)
    events: List[ExtractedEvent] = field(default_factory=list)
    top_k: int = 0
    filter: Optional[Dict[str, Any]] = None


class Retriever:
    """
    Vector and event retrieval for personal and circle queries.

    Modes:
    - personal: the user's own fragments, top_k 50 for counting queries,
      10 otherwise, optional data-type equality filter
    - circle: all members' fragments, top_k 20, coarse filter on the types
      the circle policy allows
    - data type: forced single-type personal search
    - activity: activity-tagged location fragments, top_k 20
    """

    def __init__(
        self,
        embedding_service: EmbeddingServiceProtocol,
        vector_store: VectorStoreProtocol,
        event_store: Optional[EventStoreProtocol] = None,
        config: Optional[RetrievalConfig] = None,
    ):
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.event_store = event_store
        self.config = config or RetrievalConfig()

    async def embed(self, text: str, user_id: str, purpose: str = "rag_query_embedding") -> List[float]:
        return await call_dependency(
            "embedding",
            self.embedding_service.embed(text, user_id, purpose),
        )

    async def retrieve(
        self,
        text: str,
        user_id: str,
        intent: IntentAnalysis,
        temporal: Optional[TemporalIntent] = None,
    ) -> RetrievalResult:
        """Personal-mode retrieval"""
        top_k = self.config.top_k_count_query if intent.is_count_query else self.config.top_k
        filter = None
        if intent.suggested_data_type:
            filter = {"dataType": {"$eq": intent.suggested_data_type.value}}

        vector = await self.embed(text, user_id)
        return await self._search(vector, [user_id], top_k, filter, user_id, temporal)

    async def retrieve_circle(
        self,
        text: str,
        user_id: str,
        circle: Circle,
        temporal: Optional[TemporalIntent] = None,
        vector: Optional[List[float]] = None,
    ) -> RetrievalResult:
        """
        Circle-mode retrieval across every member.

        The filter here is coarse; per-member consent is applied afterwards
        by the privacy filter.
        """
        if vector is None:
            vector = await self.embed(text, user_id, "rag_circle_query_embedding")
        filter = build_circle_filter(circle.data_sharing)
        owner_ids = sorted(circle.member_ids)
        return await self._search(vector, owner_ids, self.config.top_k_circle, filter, user_id, temporal)

    async def retrieve_by_data_type(
        self,
        text: str,
        user_id: str,
        data_type: DataType,
    ) -> RetrievalResult:
        data_type = DataType(data_type)
        filter = {"dataType": {"$eq": data_type.value}}
        vector = await self.embed(text, user_id, "rag_data_type_query_embedding")
        return await self._search(vector, [user_id], self.config.top_k, filter, user_id, None)

    async def retrieve_by_activity(
        self,
        text: str,
        user_id: str,
        activity: str,
    ) -> RetrievalResult:
        top_k = self.config.top_k_activity
        vector = await self.embed(text, user_id, "rag_activity_query_embedding")
        fragments = await call_dependency(
            "vector_store",
            self.vector_store.query_by_activity(vector, user_id, activity, top_k),
        )
        logger.debug("Activity search '%s' returned %d fragments", activity, len(fragments))
        return RetrievalResult(fragments=list(fragments), top_k=top_k)

    async def fetch_events(self, user_id: str, temporal: Optional[TemporalIntent]) -> List[ExtractedEvent]:
        """
        Events in the resolved date range.

        Never raises: a failing event store is logged and yields no events.
        """
        if self.event_store is None or temporal is None or not temporal.has_temporal_intent:
            return []

        date_range = temporal.date_range
        try:
            events = await self.event_store.get_events(
                user_id, date_range.start, date_range.end, limit=self.config.event_limit,
            )
        except Exception as e:
            logger.warning("Event store lookup failed, continuing without events: %s", e)
            return []

        logger.debug("Found %d events for '%s'", len(events), temporal.label)
        return list(events)

    async def _search(
        self,
        vector: List[float],
        owner_ids: List[str],
        top_k: int,
        filter: Optional[Dict[str, Any]],
        user_id: str,
        temporal: Optional[TemporalIntent],
    ) -> RetrievalResult:
        logger.debug("Vector query: owners=%d top_k=%d filter=%s", len(owner_ids), top_k, filter)

        fragments, events = await asyncio.gather(
            call_dependency(
                "vector_store",
                self.vector_store.query(vector, owner_ids, top_k, filter),
            ),
            self.fetch_events(user_id, temporal),
        )
        return RetrievalResult(fragments=list(fragments), events=events, top_k=top_k, filter=filter)
