"""
Query Engine

Explicitly constructed orchestrator over injected collaborators:

    intent + temporal -> retriever -> [privacy filter] -> context builder -> generator

The engine holds no per-query state; concurrent queries share only the
immutable configuration and collaborator handles.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from ..common.config import EngineConfig
from ..common.embedding_service import EmbeddingService
from ..common.errors import AuthorizationError, DependencyError, call_dependency
from ..common.llm_client import LLMClient
from ..common.protocols import (
    ChatCompletionProtocol,
    CircleDirectoryProtocol,
    EmbeddingServiceProtocol,
    EventStoreProtocol,
    VectorStoreProtocol,
)
from ..common.schemas import AnswerResult, ChatMessage, Circle, DataType, Query
from .context_builder import PLACEHOLDER_MEMBER_LABEL, ContextBuilder
from .generator import ResponseGenerator
from .intent import IntentAnalysis, IntentAnalyzer
from .privacy import filter_fragments
from .retriever import Retriever
from .temporal import TemporalResolver

logger = logging.getLogger("lifeqa.query.engine")


class QueryEngine:
    """
    Personal-data question answering.

    Usage:
        engine = QueryEngine(embedding_service, vector_store, chat_service,
                             event_store=events, directory=directory)
        result = await engine.query("how many times did I go to the gym last week?", "u1")
    """

    def __init__(
        self,
        embedding_service: EmbeddingServiceProtocol,
        vector_store: VectorStoreProtocol,
        chat_service: ChatCompletionProtocol,
        event_store: Optional[EventStoreProtocol] = None,
        directory: Optional[CircleDirectoryProtocol] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self.directory = directory

        self.intent_analyzer = IntentAnalyzer()
        self.temporal_resolver = TemporalResolver()
        self.retriever = Retriever(
            embedding_service, vector_store, event_store, self.config.retrieval,
        )
        self.context_builder = ContextBuilder.from_config(self.config.context)
        self.generator = ResponseGenerator(chat_service)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        vector_store: VectorStoreProtocol,
        event_store: Optional[EventStoreProtocol] = None,
        directory: Optional[CircleDirectoryProtocol] = None,
    ) -> "QueryEngine":
        """Build with the bundled OpenAI embedding service and LLM client"""
        embedding_service = EmbeddingService(
            api_key=config.embedding.api_key or None,
            model=config.embedding.model,
            dimensions=config.embedding.dimensions,
        )
        return cls(
            embedding_service=embedding_service,
            vector_store=vector_store,
            chat_service=LLMClient.from_config(config.llm),
            event_store=event_store,
            directory=directory,
            config=config,
        )

    # ------------------------------------------------------------------
    # Personal queries
    # ------------------------------------------------------------------

    async def query(
        self,
        text: str,
        user_id: str,
        conversation_history: Optional[Sequence[ChatMessage]] = None,
        now: Optional[datetime] = None,
    ) -> AnswerResult:
        """
        Answer a question from the user's own data.

        Args:
            text: Question text
            user_id: Querying user; only their fragments are searched
            conversation_history: Prior turns, passed through unchanged
            now: Clock for relative dates (defaults to current local time)

        Returns:
            AnswerResult with the fragments used and provider accounting

        Raises:
            DependencyError: embedding, vector store or chat completion failed
        """
        intent = self.intent_analyzer.analyze(text)
        temporal = self.temporal_resolver.resolve(text, now)

        retrieval = await self.retriever.retrieve(text, user_id, intent, temporal)
        built = self.context_builder.build(retrieval.fragments, retrieval.events, intent)

        result = await self.generator.generate(
            text, built.text, built.fragments, conversation_history,
            meta={"endpoint": "query", "user_id": user_id},
        )
        self._log_summary("query", intent, temporal.label, retrieval.top_k, built, result)
        return result

    async def query_by_data_type(
        self,
        text: str,
        user_id: str,
        data_type: DataType,
        conversation_history: Optional[Sequence[ChatMessage]] = None,
    ) -> AnswerResult:
        """Answer from a single data category only"""
        retrieval = await self.retriever.retrieve_by_data_type(text, user_id, data_type)
        built = self.context_builder.build(retrieval.fragments)

        result = await self.generator.generate(
            text, built.text, built.fragments, conversation_history,
            meta={"endpoint": "query_by_data_type", "user_id": user_id},
        )
        self._log_summary("query_by_data_type", None, None, retrieval.top_k, built, result)
        return result

    async def query_by_activity(
        self,
        text: str,
        user_id: str,
        activity: str,
        conversation_history: Optional[Sequence[ChatMessage]] = None,
    ) -> AnswerResult:
        """Answer from location visits tagged with an activity (e.g. "badminton")"""
        retrieval = await self.retriever.retrieve_by_activity(text, user_id, activity)
        built = self.context_builder.build(retrieval.fragments)

        result = await self.generator.generate(
            text, built.text, built.fragments, conversation_history,
            meta={"endpoint": "query_by_activity", "user_id": user_id},
        )
        self._log_summary("query_by_activity", None, None, retrieval.top_k, built, result)
        return result

    # ------------------------------------------------------------------
    # Circle queries
    # ------------------------------------------------------------------

    async def query_circle(
        self,
        text: str,
        circle_id: str,
        user_id: str,
        conversation_history: Optional[Sequence[ChatMessage]] = None,
        now: Optional[datetime] = None,
    ) -> AnswerResult:
        """
        Answer from the data shared inside a circle.

        Membership is checked before any retrieval. Every other member's
        fragments pass through the effective-sharing filter; the querying
        user's own fragments are always kept.

        Raises:
            AuthorizationError: user is not a member of the circle
            DependencyError: directory, embedding, vector store or chat
                completion failed
        """
        circle = await self._load_circle(circle_id, user_id)

        intent = self.intent_analyzer.analyze(text)
        temporal = self.temporal_resolver.resolve(text, now)

        other_members = sorted(circle.member_ids - {user_id})
        settings_task = asyncio.create_task(call_dependency(
            "directory",
            self.directory.get_privacy_settings(user_id, other_members),
        ))
        try:
            vector = await self.retriever.embed(text, user_id, "rag_circle_query_embedding")
        except Exception:
            settings_task.cancel()
            raise
        privacy_settings = await settings_task or {}

        retrieval = await self.retriever.retrieve_circle(
            text, user_id, circle, temporal, vector=vector,
        )
        fragments = filter_fragments(retrieval.fragments, user_id, circle, privacy_settings)

        display_names = await self.resolve_display_names(
            {f.owner_user_id for f in fragments if f.owner_user_id != user_id}
        )
        built = self.context_builder.build_circle(
            fragments, circle, user_id, display_names, retrieval.events, intent,
        )

        result = await self.generator.generate(
            text, built.text, built.fragments, conversation_history, circle=circle,
            meta={"endpoint": "query_circle", "user_id": user_id, "circle_id": circle.id},
        )
        self._log_summary("query_circle", intent, temporal.label, retrieval.top_k, built, result)
        return result

    async def answer(self, query: Query, circle_id: Optional[str] = None,
                     now: Optional[datetime] = None) -> AnswerResult:
        """Dispatch a Query to the personal or circle path"""
        if circle_id:
            return await self.query_circle(
                query.text, circle_id, query.user_id, query.conversation_history, now,
            )
        return await self.query(query.text, query.user_id, query.conversation_history, now)

    async def resolve_display_names(self, user_ids: Iterable[str]) -> Dict[str, str]:
        """
        Look up display names concurrently.

        A failed or empty lookup maps to "Circle Member"; it never fails the
        query.
        """
        user_ids = sorted(set(user_ids))
        if not user_ids:
            return {}

        results = await asyncio.gather(
            *(self.directory.get_display_name(uid) for uid in user_ids),
            return_exceptions=True,
        )

        names = {}
        for uid, result in zip(user_ids, results):
            if isinstance(result, Exception):
                logger.warning("Display name lookup failed for %s: %s", uid, result)
                names[uid] = PLACEHOLDER_MEMBER_LABEL
            else:
                names[uid] = result or PLACEHOLDER_MEMBER_LABEL
        return names

    async def _load_circle(self, circle_id: str, user_id: str) -> Circle:
        if self.directory is None:
            raise DependencyError("directory", "No circle directory configured")

        circle = await call_dependency("directory", self.directory.get_circle(circle_id))
        if circle is None or not circle.has_member(user_id):
            logger.warning("User %s denied access to circle %s", user_id, circle_id)
            raise AuthorizationError(user_id, circle_id)
        return circle

    @staticmethod
    def _log_summary(endpoint, intent: Optional[IntentAnalysis], temporal_label, top_k, built, result):
        flags: List[str] = []
        if intent is not None:
            if intent.is_count_query:
                flags.append("count")
            if intent.is_average_query:
                flags.append("average")
            if intent.is_comparison_query:
                flags.append("comparison")
            if intent.language is not None:
                flags.append(f"lang={intent.language.code}")
        if temporal_label:
            flags.append(f"temporal={temporal_label}")

        logger.info(
            "%s complete: %d fragments, %d events, top_k=%d%s, cost=$%.4f",
            endpoint,
            len(built.fragments),
            len(built.events),
            top_k,
            f" [{', '.join(flags)}]" if flags else "",
            result.provider_info.estimated_cost_usd,
        )
