"""
Query Engine Data Model

Inputs, retrieved material and results of a single query invocation.
Circle and friend-privacy records are owned by the directory service; the
engine only reads them.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Set
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class DataType(str, Enum):
    """Categories of embedded personal data"""
    HEALTH = "health"
    LOCATION = "location"
    VOICE = "voice"
    PHOTO = "photo"
    TEXT = "text"
    SHARED_ACTIVITY = "shared_activity"


# ============================================================================
# Conversation
# ============================================================================

class ChatMessage(BaseModel):
    """A single conversation turn"""
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: Optional[datetime] = None

    def to_provider_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


class Query(BaseModel):
    """Immutable query input"""
    model_config = ConfigDict(frozen=True)

    text: str
    user_id: str
    conversation_history: List[ChatMessage] = Field(default_factory=list)


# ============================================================================
# Sharing
# ============================================================================

class SharingPolicy(BaseModel):
    """
    Per-category sharing flags.

    Every flag defaults to False: a missing permission is a denial.
    """
    share_health: bool = False
    share_location: bool = False
    share_activities: bool = False
    share_voice_notes: bool = False
    share_photos: bool = False
    share_diary: bool = False


class FriendPrivacySettings(SharingPolicy):
    """What an owner is willing to share with one specific viewer"""


class Circle(BaseModel):
    """A named group of users with a shared data-visibility policy"""
    id: str
    name: str
    member_ids: Set[str] = Field(default_factory=set)
    data_sharing: SharingPolicy = Field(default_factory=SharingPolicy)

    def has_member(self, user_id: str) -> bool:
        return user_id in self.member_ids


# ============================================================================
# Retrieved material
# ============================================================================

class RetrievedFragment(BaseModel):
    """
    A single piece of embedded personal data returned by the vector store.

    data_type is kept as the raw stored string so that types outside
    DataType survive retrieval (and are then denied by the privacy filter).
    """
    id: str
    score: float = Field(ge=0.0, le=1.0)
    owner_user_id: str
    data_type: str
    text: str = ""
    occurred_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_photo(self) -> bool:
        return self.data_type == DataType.PHOTO.value


class ExtractedEvent(BaseModel):
    """Structured, date-queryable fact extracted upstream"""
    id: str
    title: str
    description: Optional[str] = None
    occurs_at: datetime
    confidence: float = Field(ge=0.0, le=1.0, default=0.7)


# ============================================================================
# Results
# ============================================================================

class ContextReference(BaseModel):
    """Provenance entry returned alongside the answer"""
    id: str
    score: float
    data_type: str
    snippet: str
    owner_user_id: Optional[str] = None

    @classmethod
    def from_fragment(cls, fragment: RetrievedFragment, attribute: bool = False) -> "ContextReference":
        return cls(
            id=fragment.id,
            score=fragment.score,
            data_type=fragment.data_type,
            snippet=fragment.text,
            owner_user_id=fragment.owner_user_id if attribute else None,
        )


class ProviderInfo(BaseModel):
    """Informational accounting for the single chat-completion call"""
    provider_id: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    estimated_cost_usd: float = 0.0
    used_fallback: bool = False


class AnswerResult(BaseModel):
    """Final answer plus provenance"""
    response_text: str
    context_used: List[ContextReference] = Field(default_factory=list)
    provider_info: ProviderInfo
