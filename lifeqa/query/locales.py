"""
Locale Pattern Registry

Lexical pattern tables for the 9 supported languages (en, zh, ja, ko, es,
fr, de, it, pt), one entry set per language and per intent. The tables are
data: adding a locale means adding rows, not code.

Latin-script patterns carry word boundaries; CJK and Hangul patterns are
plain substrings since those scripts do not separate words with spaces.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class LocalePattern:
    """One compiled pattern and the locale it belongs to"""
    locale: str
    pattern: re.Pattern


class PatternRegistry:
    """
    Ordered (locale, compiled pattern) lists keyed by intent name.

    Evaluation order is registration order: locales in the order given,
    patterns within a locale in table order.
    """

    def __init__(self):
        self._entries: Dict[str, List[LocalePattern]] = {}

    def register(self, key: str, locale: str, patterns: Iterable[str]) -> None:
        entries = self._entries.setdefault(key, [])
        for pattern in patterns:
            entries.append(LocalePattern(locale, re.compile(pattern, re.IGNORECASE)))

    def register_table(self, key: str, table: Dict[str, List[str]]) -> None:
        for locale, patterns in table.items():
            self.register(key, locale, patterns)

    def search(self, key: str, text: str) -> Optional[Tuple[str, re.Match]]:
        """First pattern (in registration order) that matches anywhere in text"""
        for entry in self._entries.get(key, []):
            match = entry.pattern.search(text)
            if match:
                return entry.locale, match
        return None

    def matches(self, key: str, text: str) -> bool:
        return self.search(key, text) is not None

    def leftmost(self, key: str, text: str) -> Optional[Tuple[str, re.Match]]:
        """Match starting earliest in text; ties go to registration order"""
        best = None
        for entry in self._entries.get(key, []):
            match = entry.pattern.search(text)
            if match and (best is None or match.start() < best[1].start()):
                best = (entry.locale, match)
        return best


# ============================================================================
# Intent tables
# ============================================================================

COUNT_PATTERNS = {
    "en": [r"\bhow many\b", r"\bnumber of\b", r"\bcount", r"\btimes\b", r"\bhow often\b"],
    "zh": [r"几个", r"几次", r"多少个", r"多少次", r"多少张", r"有几", r"数量", r"统计"],
    "ja": [r"いくつ", r"何個", r"何回", r"何度", r"何枚", r"回数"],
    "ko": [r"몇\s?개", r"몇\s?번", r"몇\s?장", r"얼마나", r"횟수"],
    "es": [r"\bcuántos\b", r"\bcuántas\b", r"\bnúmero de\b", r"\bcantidad\b", r"\bveces\b"],
    "fr": [r"\bcombien\b", r"\bnombre de\b", r"\bfois\b"],
    "de": [r"\bwie viele\b", r"\bwieviel", r"\bwie oft\b", r"\banzahl\b"],
    "it": [r"\bquanti\b", r"\bquante\b", r"\bnumero di\b", r"\bvolte\b"],
    "pt": [r"\bquantos\b", r"\bquantas\b", r"\bnúmero de\b", r"\bvezes\b"],
}

AVERAGE_PATTERNS = {
    "en": [r"\baverage\b", r"\bmean\b", r"\btypical"],
    "zh": [r"平均", r"均值"],
    "ja": [r"平均", r"平均値"],
    "ko": [r"평균"],
    "es": [r"\bpromedio\b", r"\bmedia\b"],
    "fr": [r"\bmoyenne\b"],
    "de": [r"\bdurchschnitt", r"\bmittel\b"],
    "it": [r"\bmedia\b", r"\bmedio\b"],
    "pt": [r"\bmédia\b"],
}

COMPARISON_PATTERNS = {
    "en": [r"\bmore than\b", r"\bless than\b", r"\bcompar", r"\bversus\b"],
    "zh": [r"比较", r"超过", r"少于", r"对比"],
    "ja": [r"より多い", r"より少ない", r"比較"],
    "ko": [r"보다\s?많", r"보다\s?적", r"비교"],
    "es": [r"\bmás que\b", r"\bmenos que\b", r"\bcomparar\b"],
    "fr": [r"\bplus que\b", r"\bmoins que\b", r"\bcomparer\b"],
    "de": [r"\bmehr als\b", r"\bweniger als\b", r"\bvergleich"],
    "it": [r"\bpiù di\b", r"\bmeno di\b", r"\bconfrontare\b"],
    "pt": [r"\bmais que\b", r"\bmenos que\b", r"\bcomparar\b"],
}

# Data-type tables, evaluated in priority order photo > health > location > voice
PHOTO_PATTERNS = {
    "en": [r"\bphotos?\b", r"\bpictures?\b", r"\bimages?\b", r"\btook\b", r"\bcaptured\b",
           r"\bshow me\b", r"\bvisual"],
    "zh": [r"照片", r"图片", r"相片", r"拍照", r"拍摄"],
    "ja": [r"写真", r"画像", r"フォト"],
    "ko": [r"사진", r"이미지"],
    "es": [r"\bfotos?\b", r"\bfotografía", r"\bimagen"],
    "fr": [r"\bphotos?\b", r"\bimages?\b"],
    "de": [r"\bfotos?\b", r"\bbild(er)?\b"],
    "it": [r"\bfoto\b", r"\bimmagin[ei]\b"],
    "pt": [r"\bfotos?\b", r"\bimage(m|ns)\b"],
}

HEALTH_PATTERNS = {
    "en": [r"\bsteps?\b", r"\bwalk", r"\bheart", r"\bsleep", r"\bworkouts?\b", r"\bexercis",
           r"\bfitness\b", r"\bhealth", r"\btrain(ing|ed)?\b"],
    "zh": [r"步数", r"走路", r"心率", r"睡眠", r"运动", r"健身", r"锻炼"],
    "ja": [r"歩数", r"睡眠", r"運動", r"心拍", r"ヘルス", r"トレーニング"],
    "ko": [r"걸음", r"수면", r"운동", r"심박", r"건강", r"트레이닝"],
    "es": [r"\bpasos\b", r"\bsueño\b", r"\bejercicio", r"\britmo cardíaco\b", r"\bsalud\b",
           r"\bentrenar"],
    "fr": [r"\bnombre de pas\b", r"\bsommeil\b", r"\bexercice", r"\brythme cardiaque\b",
           r"\bsanté\b", r"\bentraîn"],
    "de": [r"\bschritte\b", r"\bschlaf", r"\bübung", r"\bherzfrequenz\b", r"\bgesundheit\b",
           r"\btrainiert\b", r"\btraining\b"],
    "it": [r"\bpassi\b", r"\bsonno\b", r"\besercizi", r"\bfrequenza cardiaca\b", r"\bsalute\b",
           r"\ballenament"],
    "pt": [r"\bpassos\b", r"\b(meu|de) sono\b", r"\bexercício", r"\bfrequência cardíaca\b",
           r"\bsaúde\b"],
}

LOCATION_PATTERNS = {
    "en": [r"\blocations?\b", r"\bplaces?\b", r"\bwhere\b", r"\bvisit", r"\bgo\b", r"\bwent\b",
           r"\bbeen to\b"],
    "zh": [r"位置", r"地点", r"去了", r"到过", r"去过"],
    "ja": [r"場所", r"位置", r"訪問", r"どこ"],
    "ko": [r"장소", r"위치", r"방문", r"어디"],
    "es": [r"\blugar(es)?\b", r"\bubicación\b", r"\bvisit", r"\bdónde\b"],
    "fr": [r"\blieux?\b", r"\bendroits?\b", r"\bvisite", r"\boù\b"],
    "de": [r"\bort\b", r"\bstandort\b", r"\bbesuch", r"\bwo\b"],
    "it": [r"\bluogh?i?o?\b", r"\bposizione\b", r"\bvisit", r"\bdove\b"],
    "pt": [r"\blugar(es)?\b", r"\blocal\b", r"\bvisit", r"\bonde\b"],
}

VOICE_PATTERNS = {
    "en": [r"\bvoice\b", r"\bnotes?\b", r"\bsaid\b", r"\brecord(ed|ing)\b", r"\baudio\b"],
    "zh": [r"语音", r"录音", r"音频", r"记录", r"语音信息", r"语音笔记"],
    "ja": [r"音声", r"ボイス", r"録音", r"メモ"],
    "ko": [r"음성", r"녹음", r"메모", r"오디오"],
    "es": [r"\bvoz\b", r"\bnota de voz\b", r"\bgrabación\b", r"\baudio\b"],
    "fr": [r"\bvoix\b", r"\bnote vocale\b", r"\benregistrement\b"],
    "de": [r"\bstimme\b", r"\bsprachnotiz", r"\baufnahme\b"],
    "it": [r"\bvoce\b", r"\bnota vocale\b", r"\bregistrazione\b"],
    "pt": [r"\bvoz\b", r"\bgravação\b", r"\báudio\b"],
}

# Activity vocabulary: plain substrings, matched verbatim
ACTIVITY_VOCABULARY = {
    "en": ["badminton", "gym", "work", "restaurant", "running", "cycling", "swimming", "yoga"],
    "zh": ["羽毛球", "健身房", "跑步", "游泳", "瑜伽", "骑行"],
    "ja": ["バドミントン", "ジム", "ランニング", "水泳", "ヨガ"],
    "ko": ["배드민턴", "헬스장", "달리기", "수영", "요가"],
    "es": ["bádminton", "gimnasio", "correr", "natación"],
    "fr": ["natation", "gymnastique", "courir", "nager"],
    "de": ["schwimmen", "laufen"],
    "it": ["nuoto", "correre", "nuotando"],
    "pt": ["corrida", "natação"],
}


# ============================================================================
# Temporal tables
# ============================================================================

TODAY_PATTERNS = {
    "en": [r"\btoday\b"],
    "zh": [r"今天"],
    "ja": [r"今日"],
    "ko": [r"오늘"],
    "es": [r"\bhoy\b"],
    "fr": [r"\baujourd'hui\b"],
    "de": [r"\bheute\b"],
    "it": [r"\boggi\b"],
    "pt": [r"\bhoje\b"],
}

# Lookarounds keep "day before yesterday" forms out of the yesterday rule
YESTERDAY_PATTERNS = {
    "en": [r"(?<!before )(?<!before-)\byesterday\b"],
    "zh": [r"昨天"],
    "ja": [r"(?<!一)昨日"],
    "ko": [r"어제"],
    "es": [r"\bayer\b"],
    "fr": [r"(?<!avant-)\bhier\b"],
    "de": [r"\bgestern\b"],
    "it": [r"(?<!altro )\bieri\b(?! l'altro)"],
    "pt": [r"\bontem\b"],
}

DAY_BEFORE_YESTERDAY_PATTERNS = {
    "en": [r"\bday[- ]before[- ]yesterday\b", r"\b2 days ago\b"],
    "zh": [r"前天"],
    "ja": [r"一昨日", r"おととい"],
    "ko": [r"그저께", r"그제"],
    "es": [r"\banteayer\b"],
    "fr": [r"\bavant-hier\b"],
    "de": [r"\bvorgestern\b"],
    "it": [r"\bl'altro ieri\b", r"\bieri l'altro\b"],
    "pt": [r"\banteontem\b"],
}

# Group 1 captures the day count
DAYS_AGO_PATTERNS = {
    "en": [r"\b(\d+)\s+days?\s+ago\b"],
    "zh": [r"(\d+)\s*天前"],
    "ja": [r"(\d+)\s*日前"],
    "ko": [r"(\d+)\s*일\s*전"],
    "es": [r"\bhace\s+(\d+)\s+días?\b"],
    "fr": [r"\bil y a\s+(\d+)\s+jours?\b"],
    "de": [r"\bvor\s+(\d+)\s+tag(en)?\b"],
    "it": [r"\b(\d+)\s+giorn[oi]\s+fa\b"],
    "pt": [r"\bhá\s+(\d+)\s+dias?\b"],
}

THIS_WEEK_PATTERNS = {
    "en": [r"\bthis week\b"],
    "zh": [r"这周", r"本周", r"这个星期"],
    "ja": [r"今週"],
    "ko": [r"이번\s*주"],
    "es": [r"\besta semana\b"],
    "fr": [r"\bcette semaine\b"],
    "de": [r"\bdiese woche\b"],
    "it": [r"\bquesta settimana\b"],
    "pt": [r"\besta semana\b"],
}

LAST_WEEK_PATTERNS = {
    "en": [r"\blast week\b"],
    "zh": [r"上周", r"上星期"],
    "ja": [r"先週"],
    "ko": [r"지난\s*주"],
    "es": [r"\bla semana pasada\b"],
    "fr": [r"\bsemaine dernière\b"],
    "de": [r"\bletzte woche\b"],
    "it": [r"\bsettimana scorsa\b"],
    "pt": [r"\bsemana passada\b"],
}

THIS_MONTH_PATTERNS = {
    "en": [r"\bthis month\b"],
    "zh": [r"这个月", r"本月"],
    "ja": [r"今月"],
    "ko": [r"이번\s*달"],
    "es": [r"\beste mes\b"],
    "fr": [r"\bce mois(-ci)?\b"],
    "de": [r"\bdiesen monat\b", r"\bdieser monat\b"],
    "it": [r"\bquesto mese\b"],
    "pt": [r"\beste mês\b"],
}

LAST_MONTH_PATTERNS = {
    "en": [r"\blast month\b"],
    "zh": [r"上个月", r"上月"],
    "ja": [r"先月"],
    "ko": [r"지난\s*달"],
    "es": [r"\bmes pasado\b"],
    "fr": [r"\bmois dernier\b"],
    "de": [r"\bletzten monat\b", r"\bletzter monat\b"],
    "it": [r"\bmese scorso\b"],
    "pt": [r"\bmês passado\b"],
}

THIS_YEAR_PATTERNS = {
    "en": [r"\bthis year\b"],
    "zh": [r"今年"],
    "ja": [r"今年"],
    "ko": [r"올해"],
    "es": [r"\beste año\b"],
    "fr": [r"\bcette année\b"],
    "de": [r"\bdieses jahr\b"],
    "it": [r"\bquest'anno\b", r"\bquesto anno\b"],
    "pt": [r"\beste ano\b"],
}

LAST_YEAR_PATTERNS = {
    "en": [r"\blast year\b"],
    "zh": [r"去年"],
    "ja": [r"去年", r"昨年"],
    "ko": [r"작년"],
    "es": [r"\baño pasado\b"],
    "fr": [r"\bannée dernière\b"],
    "de": [r"\bletztes jahr\b"],
    "it": [r"\banno scorso\b"],
    "pt": [r"\bano passado\b"],
}

INTENT_TABLES = {
    "count": COUNT_PATTERNS,
    "average": AVERAGE_PATTERNS,
    "comparison": COMPARISON_PATTERNS,
    "data_type:photo": PHOTO_PATTERNS,
    "data_type:health": HEALTH_PATTERNS,
    "data_type:location": LOCATION_PATTERNS,
    "data_type:voice": VOICE_PATTERNS,
    "activity": {
        locale: [re.escape(term) for term in terms]
        for locale, terms in ACTIVITY_VOCABULARY.items()
    },
}

TEMPORAL_TABLES = {
    "temporal:today": TODAY_PATTERNS,
    "temporal:yesterday": YESTERDAY_PATTERNS,
    "temporal:day_before_yesterday": DAY_BEFORE_YESTERDAY_PATTERNS,
    "temporal:days_ago": DAYS_AGO_PATTERNS,
    "temporal:this_week": THIS_WEEK_PATTERNS,
    "temporal:last_week": LAST_WEEK_PATTERNS,
    "temporal:this_month": THIS_MONTH_PATTERNS,
    "temporal:last_month": LAST_MONTH_PATTERNS,
    "temporal:this_year": THIS_YEAR_PATTERNS,
    "temporal:last_year": LAST_YEAR_PATTERNS,
}


def build_registry() -> PatternRegistry:
    """Compile every intent and temporal table into a fresh registry"""
    registry = PatternRegistry()
    for key, table in {**INTENT_TABLES, **TEMPORAL_TABLES}.items():
        registry.register_table(key, table)
    return registry


DEFAULT_REGISTRY = build_registry()
