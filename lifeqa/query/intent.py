"""
Intent Analyzer

Classifies a query as counting / average / comparison and guesses the data
category and activity it is about. Every supported language is checked on
every query: a match from any locale sets the flag.
"""

from dataclasses import dataclass
from typing import Optional

from ..common.language import LanguageInfo, detect_language
from ..common.schemas import DataType
from .locales import DEFAULT_REGISTRY, PatternRegistry

# Overlapping vocabulary resolves in this order
DATA_TYPE_PRIORITY = (
    DataType.PHOTO,
    DataType.HEALTH,
    DataType.LOCATION,
    DataType.VOICE,
)


@dataclass
class IntentAnalysis:
    """Derived query intent; never persisted"""
    is_count_query: bool = False
    is_average_query: bool = False
    is_comparison_query: bool = False
    suggested_data_type: Optional[DataType] = None
    suggested_activity: Optional[str] = None
    language: Optional[LanguageInfo] = None

    @property
    def count_label(self) -> str:
        """Noun used in the counting instruction block"""
        return self.suggested_data_type.value if self.suggested_data_type else "items"


class IntentAnalyzer:
    """
    Pure lexical intent classification.

    Flags are independent of one another: a query can be both a counting
    and a comparison query.
    """

    def __init__(self, registry: Optional[PatternRegistry] = None, detect_lang: bool = True):
        self._registry = registry or DEFAULT_REGISTRY
        self._detect_lang = detect_lang

    def analyze(self, text: str) -> IntentAnalysis:
        text = text or ""
        return IntentAnalysis(
            is_count_query=self._registry.matches("count", text),
            is_average_query=self._registry.matches("average", text),
            is_comparison_query=self._registry.matches("comparison", text),
            suggested_data_type=self.suggest_data_type(text),
            suggested_activity=self.suggest_activity(text),
            language=detect_language(text) if self._detect_lang and text.strip() else None,
        )

    def suggest_data_type(self, text: str) -> Optional[DataType]:
        for data_type in DATA_TYPE_PRIORITY:
            if self._registry.matches(f"data_type:{data_type.value}", text):
                return data_type
        return None

    def suggest_activity(self, text: str) -> Optional[str]:
        """Earliest activity term in the text, as written in the query"""
        found = self._registry.leftmost("activity", text)
        if found is None:
            return None
        _, match = found
        return match.group(0)


def analyze_query(text: str) -> IntentAnalysis:
    """Analyze with the default pattern registry"""
    return IntentAnalyzer().analyze(text)
