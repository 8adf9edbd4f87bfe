"""
LifeQA

Question answering over a user's private data: notes, health metrics,
location visits, photos and extracted calendar events.

Philosophy:
- Answers are grounded in retrieved fragments, never invented
- Circle queries see only what both the circle and each friend allow
- Every external dependency is injected; the engine holds no global state

Usage:
    from lifeqa.common import load_config, EmbeddingService, LLMClient
    from lifeqa.query import QueryEngine
"""

__version__ = "0.1.0"
