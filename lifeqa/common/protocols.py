"""
Protocol definitions for the query engine's collaborators.

The engine never reaches a storage or network layer directly; it is handed
objects satisfying these contracts:
- EmbeddingServiceProtocol: query text -> vector
- VectorStoreProtocol: nearest-neighbour search over embedded fragments
- EventStoreProtocol: date-range lookup of extracted events
- ChatCompletionProtocol: one chat completion with token accounting
- CircleDirectoryProtocol: circles, per-friend consent, display names
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Protocol, runtime_checkable

from .schemas import ChatMessage, Circle, ExtractedEvent, FriendPrivacySettings, RetrievedFragment


@dataclass
class ChatCompletion:
    """Raw result of one chat completion call"""
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


@runtime_checkable
class EmbeddingServiceProtocol(Protocol):

    async def embed(self, text: str, user_id: str, purpose: str) -> List[float]: ...


@runtime_checkable
class VectorStoreProtocol(Protocol):
    """
    Filter language: {"dataType": {"$eq": value}} or {"dataType": {"$in": [values]}}.
    """

    async def query(
        self,
        vector: List[float],
        owner_ids: Iterable[str],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[RetrievedFragment]: ...

    async def query_by_activity(
        self,
        vector: List[float],
        owner_id: str,
        activity: str,
        top_k: int,
    ) -> List[RetrievedFragment]: ...


@runtime_checkable
class EventStoreProtocol(Protocol):

    async def get_events(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
        limit: int = 50,
    ) -> List[ExtractedEvent]: ...


@runtime_checkable
class ChatCompletionProtocol(Protocol):

    provider: str

    async def complete(
        self,
        messages: List[ChatMessage],
        context: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> ChatCompletion: ...

    async def complete_with_system_prompt(
        self,
        messages: List[ChatMessage],
        context: str,
        system_prompt: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> ChatCompletion: ...


@runtime_checkable
class CircleDirectoryProtocol(Protocol):

    async def get_circle(self, circle_id: str) -> Circle: ...

    async def get_privacy_settings(
        self,
        viewer_id: str,
        owner_ids: Iterable[str],
    ) -> Dict[str, FriendPrivacySettings]: ...

    async def get_display_name(self, user_id: str) -> str: ...
