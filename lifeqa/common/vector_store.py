"""
In-Memory Vector Store

Process-local implementation of the vector store contract. Serves local
runs and tests, and pins down the filter language every backend must
honour:

    {"dataType": {"$eq": "health"}}
    {"dataType": {"$in": ["health", "location"]}}
    {"$and": [<filter>, <filter>]}

Any other top-level key is matched against fragment metadata with the same
operators.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .embedding_service import batch_cosine_similarity
from .schemas import DataType, RetrievedFragment

logger = logging.getLogger("lifeqa.common.vector_store")


def _field_value(fragment: RetrievedFragment, key: str) -> Any:
    if key in ("dataType", "type", "data_type"):
        return fragment.data_type
    if key in ("userId", "owner_user_id"):
        return fragment.owner_user_id
    return fragment.metadata.get(key)


def matches_filter(fragment: RetrievedFragment, filter: Optional[Dict[str, Any]]) -> bool:
    """Evaluate a metadata filter against a fragment"""
    if not filter:
        return True

    for key, condition in filter.items():
        if key == "$and":
            if not all(matches_filter(fragment, sub) for sub in condition):
                return False
            continue
        if key == "$or":
            if not any(matches_filter(fragment, sub) for sub in condition):
                return False
            continue

        value = _field_value(fragment, key)
        if not isinstance(condition, dict):
            condition = {"$eq": condition}

        for op, expected in condition.items():
            if op == "$eq" and value != expected:
                return False
            if op == "$ne" and value == expected:
                return False
            if op == "$in" and value not in expected:
                return False
            if op == "$nin" and value in expected:
                return False
            if op not in ("$eq", "$ne", "$in", "$nin"):
                raise ValueError(f"Unsupported filter operator: {op}")

    return True


class InMemoryVectorStore:
    """
    Brute-force cosine similarity search over (fragment, vector) pairs.

    Stored fragments carry score 0.0; query results are copies scored
    against the query vector.
    """

    def __init__(self):
        self._records: List[Tuple[RetrievedFragment, List[float]]] = []

    def __len__(self) -> int:
        return len(self._records)

    def add(self, fragment: RetrievedFragment, vector: List[float]) -> None:
        """Add an embedded fragment"""
        self._records.append((fragment, list(vector)))

    async def query(
        self,
        vector: List[float],
        owner_ids: Iterable[str],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[RetrievedFragment]:
        owners = set(owner_ids)
        candidates = [
            (fragment, vec) for fragment, vec in self._records
            if fragment.owner_user_id in owners and matches_filter(fragment, filter)
        ]
        logger.debug("Vector query over %d candidates (top_k=%d)", len(candidates), top_k)
        return self._rank(vector, candidates, top_k)

    async def query_by_activity(
        self,
        vector: List[float],
        owner_id: str,
        activity: str,
        top_k: int,
    ) -> List[RetrievedFragment]:
        """Location fragments tagged with the given activity"""
        activity_lower = activity.lower()
        candidates = [
            (fragment, vec) for fragment, vec in self._records
            if fragment.owner_user_id == owner_id
            and fragment.data_type == DataType.LOCATION.value
            and self._has_activity(fragment, activity_lower)
        ]
        return self._rank(vector, candidates, top_k)

    @staticmethod
    def _has_activity(fragment: RetrievedFragment, activity: str) -> bool:
        tags = fragment.metadata.get("activity") or fragment.metadata.get("activities") or []
        if isinstance(tags, str):
            tags = [tags]
        return any(str(tag).lower() == activity for tag in tags)

    @staticmethod
    def _rank(
        vector: List[float],
        candidates: List[Tuple[RetrievedFragment, List[float]]],
        top_k: int,
    ) -> List[RetrievedFragment]:
        if not candidates or top_k <= 0:
            return []

        scores = batch_cosine_similarity(vector, [vec for _, vec in candidates])
        scored = [
            fragment.model_copy(update={"score": score})
            for (fragment, _), score in zip(candidates, scores)
        ]
        scored.sort(key=lambda f: f.score, reverse=True)
        return scored[:top_k]
