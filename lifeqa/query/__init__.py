"""
Query Engine - Personal Data Question Answering

Retrieval-augmented answers over a user's own data or a circle's shared data.

Key Components:
- IntentAnalyzer: counting / average / comparison flags, data type, activity
- TemporalResolver: relative dates to absolute ranges, 9 languages
- Retriever: embedding, vector search, extracted events
- Privacy filter: effective sharing for circle queries
- ContextBuilder: ranked, dated, bounded context text
- ResponseGenerator: one chat completion with cost accounting

Pipeline:
1. Analyze intent and resolve time references
2. Embed the query and search the vector store (plus events in range)
3. Filter circle fragments by effective sharing
4. Build the context
5. Generate the answer
"""

from .context_builder import BuiltContext, ContextBuilder
from .engine import QueryEngine
from .generator import ResponseGenerator
from .intent import IntentAnalysis, IntentAnalyzer, analyze_query
from .retriever import RetrievalResult, Retriever
from .temporal import DateRange, TemporalIntent, TemporalResolver, parse_temporal

__all__ = [
    "QueryEngine",
    "IntentAnalyzer",
    "IntentAnalysis",
    "analyze_query",
    "TemporalResolver",
    "TemporalIntent",
    "DateRange",
    "parse_temporal",
    "Retriever",
    "RetrievalResult",
    "ContextBuilder",
    "BuiltContext",
    "ResponseGenerator",
]
