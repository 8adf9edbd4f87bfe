"""
Context Builder

Formats ranked fragments and extracted events into one bounded block of
text for the generator. Output shape (personal query):

    Total health found: 12

    IMPORTANT: This is a COUNTING query. ...

    Relevant information from the user's personal data (12 items):

    [1] (91.3% relevant) [Mar 4, 2025] Gym session, 45 minutes

    [Event 1] (80% confidence) [2025-03-04T18:00:00] Badminton: with Sam

Circle queries use a circle header and label every fragment with its owner.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence

from ..common.config import ContextConfig
from ..common.schemas import Circle, ExtractedEvent, RetrievedFragment
from .intent import IntentAnalysis

logger = logging.getLogger("lifeqa.query.context_builder")

INSUFFICIENT_DATA_MESSAGE = (
    "No relevant data found in the user's personal history. "
    "Let the user know you need more data to answer their question."
)

CIRCLE_INSUFFICIENT_DATA_TEMPLATE = (
    'No relevant data found in circle "{name}". '
    "Circle members may not have this type of data, or it may not be shared."
)

COUNTING_TEMPLATE = (
    "Total {label} found: {count}\n\n"
    "IMPORTANT: This is a COUNTING query. Count the exact number of {label} "
    "in the context below and provide the specific count in your answer."
)

PHOTO_MARKER = "📸 Photo: "
SELF_LABEL = "You"
PLACEHOLDER_MEMBER_LABEL = "Circle Member"

# Timestamp sources for the date prefix, first valid one wins
DATE_METADATA_KEYS = ("date", "createdAt", "created_at", "timestamp")

# Epoch values above this are milliseconds
_EPOCH_MS_THRESHOLD = 1e11


@dataclass
class BuiltContext:
    """Assembled context plus the fragments it was built from, in rank order"""
    text: str
    fragments: List[RetrievedFragment] = field(default_factory=list)
    events: List[ExtractedEvent] = field(default_factory=list)
    truncated: bool = False


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a datetime, ISO-8601 string or epoch (s or ms); None if invalid"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if value.isdigit():
            value = int(value)
        else:
            if value.endswith("Z"):
                value = value[:-1] + "+00:00"
            try:
                return datetime.fromisoformat(value)
            except ValueError:
                return None

    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    return None


def fragment_date(fragment: RetrievedFragment) -> Optional[datetime]:
    if fragment.occurred_at is not None:
        return fragment.occurred_at
    for key in DATE_METADATA_KEYS:
        parsed = parse_timestamp(fragment.metadata.get(key))
        if parsed is not None:
            return parsed
    return None


def format_date(moment: datetime) -> str:
    """e.g. "Mar 4, 2025" """
    return f"{moment:%b} {moment.day}, {moment.year}"


def rank_fragments(fragments: Sequence[RetrievedFragment]) -> List[RetrievedFragment]:
    """Score descending, ties in retrieval order, first occurrence of each id"""
    seen = set()
    unique = []
    for fragment in fragments:
        if fragment.id in seen:
            continue
        seen.add(fragment.id)
        unique.append(fragment)
    return sorted(unique, key=lambda f: f.score, reverse=True)


class ContextBuilder:
    """Bounded-length context assembly"""

    def __init__(self, max_length: int = 8000, truncation_marker: str = "\n...[context truncated]"):
        self.max_length = max_length
        self.truncation_marker = truncation_marker

    @classmethod
    def from_config(cls, config: ContextConfig) -> "ContextBuilder":
        return cls(max_length=config.max_length, truncation_marker=config.truncation_marker)

    # ------------------------------------------------------------------
    # Personal queries
    # ------------------------------------------------------------------

    def build(
        self,
        fragments: Sequence[RetrievedFragment],
        events: Optional[Sequence[ExtractedEvent]] = None,
        intent: Optional[IntentAnalysis] = None,
    ) -> BuiltContext:
        ranked = rank_fragments(fragments)
        events = list(events or [])

        if not ranked and not events:
            return BuiltContext(text=INSUFFICIENT_DATA_MESSAGE)

        header = f"Relevant information from the user's personal data ({len(ranked)} items)"
        if events:
            header += f" and extracted events ({len(events)} events)"

        parts = [self._format_fragment(i, f) for i, f in enumerate(ranked, 1)]
        parts.extend(self._format_event(i, e) for i, e in enumerate(events, 1))

        text = f"{header}:\n\n" + "\n\n".join(parts)
        return self._finish(text, ranked, events, intent)

    # ------------------------------------------------------------------
    # Circle queries
    # ------------------------------------------------------------------

    def build_circle(
        self,
        fragments: Sequence[RetrievedFragment],
        circle: Circle,
        viewer_id: str,
        display_names: Mapping[str, str],
        events: Optional[Sequence[ExtractedEvent]] = None,
        intent: Optional[IntentAnalysis] = None,
    ) -> BuiltContext:
        """
        Fragments must already have passed the privacy filter.

        Each line names its owner: "You" for the viewer, the display name
        otherwise, "Circle Member" when the name is unknown.
        """
        ranked = rank_fragments(fragments)
        events = list(events or [])

        if not ranked and not events:
            return BuiltContext(text=CIRCLE_INSUFFICIENT_DATA_TEMPLATE.format(name=circle.name))

        parts = []
        for i, fragment in enumerate(ranked, 1):
            if fragment.owner_user_id == viewer_id:
                owner = SELF_LABEL
            else:
                owner = display_names.get(fragment.owner_user_id) or PLACEHOLDER_MEMBER_LABEL
            parts.append(self._format_fragment(i, fragment, owner))
        parts.extend(self._format_event(i, e) for i, e in enumerate(events, 1))

        header = f'Circle "{circle.name}" Data ({len(circle.member_ids)} members, {len(ranked)} items)'
        text = f"{header}:\n\n" + "\n\n".join(parts)
        return self._finish(text, ranked, events, intent)

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    @staticmethod
    def _format_fragment(index: int, fragment: RetrievedFragment, owner: Optional[str] = None) -> str:
        line = f"[{index}] ({fragment.score * 100:.1f}% relevant) "
        if owner:
            line += f"[{owner}] "
        moment = fragment_date(fragment)
        if moment is not None:
            line += f"[{format_date(moment)}] "
        if fragment.is_photo:
            line += PHOTO_MARKER
        return line + fragment.text

    @staticmethod
    def _format_event(index: int, event: ExtractedEvent) -> str:
        line = (
            f"[Event {index}] ({event.confidence * 100:.0f}% confidence) "
            f"[{event.occurs_at.isoformat()}] {event.title}"
        )
        if event.description:
            line += f": {event.description}"
        return line

    def _finish(
        self,
        text: str,
        ranked: List[RetrievedFragment],
        events: List[ExtractedEvent],
        intent: Optional[IntentAnalysis],
    ) -> BuiltContext:
        if intent is not None and intent.is_count_query and ranked:
            block = COUNTING_TEMPLATE.format(label=intent.count_label, count=len(ranked))
            text = f"{block}\n\n{text}"

        text, truncated = self.truncate(text)
        logger.debug(
            "Context built: %d chars, %d fragments, %d events%s",
            len(text), len(ranked), len(events), " (truncated)" if truncated else "",
        )
        return BuiltContext(text=text, fragments=ranked, events=events, truncated=truncated)

    def truncate(self, text: str) -> tuple:
        """Cut to max_length, keeping the head; marker appended iff cut"""
        if len(text) <= self.max_length:
            return text, False
        keep = self.max_length - len(self.truncation_marker)
        if keep <= 0:
            return self.truncation_marker[:self.max_length], True
        return text[:keep] + self.truncation_marker, True
