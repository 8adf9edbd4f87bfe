"""
Language Detection Service

Per-query language detection using langdetect + Unicode script fallback.
The query engine matches every locale's patterns regardless of the detected
language; the detected code is informational (logging, provenance).
"""

import re
from dataclasses import dataclass
from typing import Optional

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

# Seed langdetect for deterministic results
DetectorFactory.seed = 0

# Locales the pattern tables cover
SUPPORTED_LANGUAGES = ("en", "zh", "ja", "ko", "es", "fr", "de", "it", "pt")

# Matches any Hangul, Kana, or CJK character
_NON_LATIN_RE = re.compile(
    r'[\u1100-\u11FF\u3040-\u309F\u30A0-\u30FF\u3130-\u318F'
    r'\u3400-\u4DBF\u4E00-\u9FFF\uAC00-\uD7AF]'
)


@dataclass(frozen=True)
class LanguageInfo:
    """Detected language information"""
    code: str           # ISO 639-1: "en", "ko", "ja"
    confidence: float   # 0.0~1.0
    script: str         # "Latin", "Hangul", "CJK", "Kana", "Mixed"

    @property
    def is_english(self) -> bool:
        return self.code == "en"

    @property
    def is_supported(self) -> bool:
        return self.code in SUPPORTED_LANGUAGES


# Unicode range based script detection
_SCRIPT_RANGES = [
    (0xAC00, 0xD7AF, "Hangul", "ko"),    # Hangul Syllables
    (0x1100, 0x11FF, "Hangul", "ko"),    # Hangul Jamo
    (0x3130, 0x318F, "Hangul", "ko"),    # Hangul Compatibility Jamo
    (0x3040, 0x309F, "Kana", "ja"),      # Hiragana
    (0x30A0, 0x30FF, "Kana", "ja"),      # Katakana
    (0x4E00, 0x9FFF, "CJK", "zh"),      # CJK Unified Ideographs
    (0x3400, 0x4DBF, "CJK", "zh"),      # CJK Extension A
]


def _detect_script(text: str) -> tuple[str, Optional[str]]:
    """Detect dominant script from Unicode character ranges.

    Returns:
        (script_name, language_code) or ("Latin", None) for Latin-dominant text
    """
    script_counts: dict[str, int] = {}
    total = 0

    for ch in text:
        if ch.isspace() or ch in '.,!?;:"\'-()[]{}？！。，':
            continue
        total += 1
        cp = ord(ch)
        for start, end, script, _ in _SCRIPT_RANGES:
            if start <= cp <= end:
                script_counts[script] = script_counts.get(script, 0) + 1
                break
        else:
            script_counts["Latin"] = script_counts.get("Latin", 0) + 1

    if total == 0:
        return "Latin", None

    # Japanese mixes Kanji with Kana; any Kana means Japanese
    if script_counts.get("Kana", 0) > 0:
        return "Kana", "ja"
    if script_counts.get("Hangul", 0) > total * 0.15:
        return "Hangul", "ko"
    if script_counts.get("CJK", 0) > total * 0.15:
        return "CJK", "zh"

    return "Latin", None


def detect_language(text: str) -> LanguageInfo:
    """Detect language of a query.

    Non-Latin scripts are decided by Unicode ranges (reliable even for a
    few characters). Latin-script text goes through langdetect; results
    outside SUPPORTED_LANGUAGES and very short texts default to English.

    Args:
        text: Query text

    Returns:
        LanguageInfo with detected language code, confidence, and script
    """
    if not text or not text.strip():
        return LanguageInfo(code="en", confidence=1.0, script="Latin")

    cleaned = text.strip()
    script, script_lang = _detect_script(cleaned)

    if script_lang:
        return LanguageInfo(code=script_lang, confidence=0.9, script=script)

    # Very short Latin text: langdetect is unreliable
    if len(cleaned) < 10:
        return LanguageInfo(code="en", confidence=0.5, script="Latin")

    try:
        results = detect_langs(cleaned)
    except LangDetectException:
        return LanguageInfo(code="en", confidence=0.5, script="Latin")

    if results:
        top = results[0]
        if top.lang in SUPPORTED_LANGUAGES and not _NON_LATIN_RE.search(cleaned):
            return LanguageInfo(code=top.lang, confidence=round(top.prob, 4), script="Latin")

    return LanguageInfo(code="en", confidence=0.5, script="Latin")
