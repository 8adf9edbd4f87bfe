"""
LifeQA Common Module

Shared infrastructure for the query engine: configuration, provider
adapters, collaborator contracts, and the data model.
"""

from .config import EngineConfig, load_config
from .embedding_service import EmbeddingService
from .errors import AttributionLookupError, AuthorizationError, DependencyError, LifeQAError
from .llm_client import LLMClient
from .vector_store import InMemoryVectorStore

__all__ = [
    "EngineConfig",
    "load_config",
    "EmbeddingService",
    "LLMClient",
    "InMemoryVectorStore",
    "LifeQAError",
    "AuthorizationError",
    "DependencyError",
    "AttributionLookupError",
]
