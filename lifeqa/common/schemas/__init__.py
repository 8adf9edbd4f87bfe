"""
LifeQA Schemas

Data model shared by the query engine and its collaborators.
"""

from .models import (
    DataType,
    ChatMessage,
    Query,
    SharingPolicy,
    FriendPrivacySettings,
    Circle,
    RetrievedFragment,
    ExtractedEvent,
    ContextReference,
    ProviderInfo,
    AnswerResult,
)

__all__ = [
    "DataType",
    "ChatMessage",
    "Query",
    "SharingPolicy",
    "FriendPrivacySettings",
    "Circle",
    "RetrievedFragment",
    "ExtractedEvent",
    "ContextReference",
    "ProviderInfo",
    "AnswerResult",
]
