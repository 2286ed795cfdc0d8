"""발화 텍스트에 대한 정규식 기반 의도 분류기 모음.

모든 함수는 상태가 없고 대소문자를 구분하지 않는다(도시명 추출의 대문자 판정 제외).
발화 유형 판정 순서는 ``UTTERANCE_CLASSIFIERS``에 고정되어 있다:
경로 요청 → 후속 질문 → 신규 검색.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from app.schemas.enums import FollowUpKind, UtteranceKind

_FLAGS = re.IGNORECASE

# 서수 단어(러시아어 격변화 포함/영어)와 인덱스 매핑
_ORDINAL_WORD_PATTERNS: tuple[tuple[int, str], ...] = (
    (1, r"перв(?:ый|ая|ое|ого|ому|ом|ой|ую|ые|ых|ым)|first|1st"),
    (2, r"втор(?:ой|ая|ое|ого|ому|ом|ую|ые|ых|ым)|second|2nd"),
    (3, r"трет(?:ий|ья|ье|ьего|ьему|ьем|ьей|ью|ьи|ьих)|third|3rd"),
    (4, r"четв[её]рт(?:ый|ая|ое|ого|ому|ом|ой|ую|ые|ых)|fourth|4th"),
    (5, r"пят(?:ый|ая|ое|ого|ому|ом|ой|ую|ые|ых)|fifth|5th"),
)
_ORDINAL_WORDS = tuple(
    (index, re.compile(rf"(?<!\w)(?:{pattern})(?!\w)", _FLAGS)) for index, pattern in _ORDINAL_WORD_PATTERNS
)
_ORDINAL_ANY = "|".join(pattern for _, pattern in _ORDINAL_WORD_PATTERNS)
_ORDINAL_DIGIT = re.compile(r"(?<![\d.,])([1-5])(?!\d|[.,]\d)(?!\s*(?:км|km|м\b|m\b|мин|min|%|звезд|stars?))", _FLAGS)
_NUMBERED_REFERENCE = re.compile(r"(?:№|#|номер|number|вариант)\s*[1-5](?!\d)", _FLAGS)

_PRONOUN_MARKERS = re.compile(
    r"(?<!\w)(?:он|она|оно|они|него|неё|нее|них|ним|нём|нем|ему|ней|it|its|they|them|their)(?!\w)",
    _FLAGS,
)
_DEMONSTRATIVE_MARKERS = re.compile(
    r"(?<!\w)(?:этот|эта|этого|этой|этом|эту|эти|этих|тот|того|той|том|те|тех|"
    r"this\s+(?:one|place)|that\s+(?:one|place)|these|those)(?!\w)",
    _FLAGS,
)
_DIRECTIONAL_MARKERS = re.compile(r"(?<!\w)(?:там|туда|оттуда|there)(?!\w)", _FLAGS)
_ORDINAL_MARKERS = re.compile(rf"(?<!\w)(?:{_ORDINAL_ANY})(?!\w)", _FLAGS)
_COMPARISON_TRIGGERS = re.compile(r"(?<!\w)(?:сравни\w*|compare|vs\.?|versus)(?!\w)", _FLAGS)

_COMPARISON_MARKERS = re.compile(
    r"(?<!\w)(?:сравни\w*|compare|vs\.?|versus|против|лучше|хуже|дороже|дешевле|ближе|дальше|"
    r"сам(?:ый|ая|ое|ые)|better|worse|cheaper|closer|nearer|farther|best|cheapest|closest|nearest)(?!\w)",
    _FLAGS,
)
_PAIRED_ORDINALS = re.compile(
    rf"(?<!\w)(?:{_ORDINAL_ANY}|[1-5])\s+(?:и|или|vs\.?|and|or|против)\s+(?:{_ORDINAL_ANY}|[1-5])(?!\w)",
    _FLAGS,
)
_DETAIL_MARKERS = re.compile(
    r"(?<!\w)(?:что|какой|какая|какое|какие|который|которая|расскажи|подробнее|"
    r"what|which|tell\s+me\s+more|more\s+about|details?)(?!\w)",
    _FLAGS,
)

# 사실 질문 주제. 앞쪽 항목이 우선한다.
FACT_TOPICS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("parking", re.compile(r"парков|припарк|parking", _FLAGS)),
    ("hours", re.compile(r"час(?:ы|ов)?\s+работ|во\s+сколько|до\s+скольки|работает|открыт|закрыт|hours|open|clos", _FLAGS)),
    ("price", re.compile(r"цен|стоим|сколько\s+стоит|дорог|дешев|price|cost|expensive|cheap", _FLAGS)),
    ("reviews", re.compile(r"отзыв|review", _FLAGS)),
    ("rating", re.compile(r"рейтинг|оценк|rating|stars", _FLAGS)),
    ("address", re.compile(r"адрес|где\s+(?:он|она|оно)?\s*наход|как\s+добраться|address|where\s+is|located", _FLAGS)),
    ("menu", re.compile(r"меню|блюд|кухн|menu|dishes", _FLAGS)),
    ("wifi", re.compile(r"wi-?fi|вай-?фай|интернет|розетк", _FLAGS)),
    ("phone", re.compile(r"телефон|позвонить|phone|call", _FLAGS)),
)

_ROUTE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"(?<!\w)(?:построй(?:те)?|построить|покажи|показать|проложи|проложить|сделай|составь|составить)"
        r"\s+(?:мне\s+)?(?:пешеходный\s+)?(?:маршрут|путь)",
        _FLAGS,
    ),
    re.compile(r"(?<!\w)(?:маршрут|путь)\s+(?:через|по)\s", _FLAGS),
    re.compile(
        r"\b(?:build|show|plot|make|create|draw|plan)\s+(?:me\s+)?(?:a\s+|the\s+)?(?:walking\s+)?(?:route|path)\b",
        _FLAGS,
    ),
    re.compile(r"\b(?:route|path)\s+(?:through|via)\b", _FLAGS),
)

_NUMBER_WORDS: dict[str, int] = {
    "пару": 2,
    "пара": 2,
    "два": 2,
    "две": 2,
    "двух": 2,
    "три": 3,
    "трёх": 3,
    "трех": 3,
    "четыре": 4,
    "четырёх": 4,
    "четырех": 4,
    "пять": 5,
    "пяти": 5,
    "шесть": 6,
    "семь": 7,
    "десять": 10,
    "couple": 2,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "ten": 10,
}
_COUNT_PATTERN = re.compile(
    r"(?<![\w.,])(\d{1,2}|" + "|".join(_NUMBER_WORDS) + r")(?!\w)"
    r"(?:\s+(?:of\s+)?[\w-]+){0,2}?\s+(?:мест\w*|точ(?:ки|ек)|заведени\w*|локаци\w*|places?|spots?|venues?|stops?)",
    _FLAGS,
)
_EXPLORATION_PATTERN = re.compile(
    r"что\s+(?:тут|здесь|рядом|поблизости)?\s*(?:можно\s+)?посмотреть|где\s+(?:можно\s+)?погулять|"
    r"интересн\w+\s+мест|несколько\s+мест|достопримечательност|"
    r"what'?s\s+(?:here\s+)?to\s+see|things\s+to\s+(?:do|see)|places\s+to\s+visit|several\s+places",
    _FLAGS,
)
MIN_REQUESTED_COUNT = 2
MAX_REQUESTED_COUNT = 5

_INDEX_LIST_TRIGGER = re.compile(r"мест|номер|через|places?|numbers?|#|№", _FLAGS)
_INDEX_NUMBER = re.compile(r"(?<![\d.,])(\d{1,2})(?!\d|[.,]\d)")
MAX_PLACE_INDEX = 10

CITY_ALIASES: dict[str, str] = {
    "москва": "Москва",
    "москве": "Москва",
    "москву": "Москва",
    "мск": "Москва",
    "moscow": "Moscow",
    "питер": "Санкт-Петербург",
    "питере": "Санкт-Петербург",
    "спб": "Санкт-Петербург",
    "петербург": "Санкт-Петербург",
    "петербурге": "Санкт-Петербург",
    "санкт-петербург": "Санкт-Петербург",
    "санкт-петербурге": "Санкт-Петербург",
    "saint petersburg": "Saint Petersburg",
    "st petersburg": "Saint Petersburg",
    "белград": "Белград",
    "белграде": "Белград",
    "београд": "Београд",
    "belgrade": "Belgrade",
    "нови сад": "Нови-Сад",
    "нови-сад": "Нови-Сад",
    "новом саде": "Нови-Сад",
    "novi sad": "Novi Sad",
    "казань": "Казань",
    "казани": "Казань",
    "екатеринбург": "Екатеринбург",
    "екатеринбурге": "Екатеринбург",
    "екб": "Екатеринбург",
    "новосибирск": "Новосибирск",
    "новосибирске": "Новосибирск",
    "сочи": "Сочи",
    "минск": "Минск",
    "минске": "Минск",
    "тбилиси": "Тбилиси",
    "ереван": "Ереван",
    "ереване": "Ереван",
    "стамбул": "Стамбул",
    "стамбуле": "Стамбул",
    "istanbul": "Istanbul",
}
_CITY_ALIAS_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(rf"(?<![\w-]){re.escape(alias)}(?![\w-])", _FLAGS), canonical)
    for alias, canonical in sorted(CITY_ALIASES.items(), key=lambda item: -len(item[0]))
)
_CAPITALIZED_NAME = r"([A-ZА-ЯЁ][\w'-]+(?:[\s-][A-ZА-ЯЁ][\w'-]+)?)"
_LOCATIVE_CITY = re.compile(rf"(?<!\w)(?i:в|во|около|возле|рядом\s+с|in|around|near)\s+{_CAPITALIZED_NAME}")
_GENITIVE_CITY = re.compile(rf"(?<!\w)(?i:центр[аеу]?|окрестност\w+|пригород\w*|районе)\s+{_CAPITALIZED_NAME}")
_POSSESSIVE_CITY = re.compile(r"\b([A-Z][\w-]+)'s\b")
_CITY_STOPWORDS = frozenset(
    {"центре", "центр", "районе", "городе", "кафе", "баре", "ресторане", "парке", "мне", "google", "maps", "the"}
)

UtterancePredicate = Callable[[str], bool]


def _ordinal_matches(text: str) -> list[tuple[int, int]]:
    """(위치, 서수) 목록을 등장 순서대로 반환합니다."""
    matches: list[tuple[int, int]] = []
    for index, pattern in _ORDINAL_WORDS:
        matches.extend((match.start(), index) for match in pattern.finditer(text))
    if not matches:
        matches.extend((match.start(), int(match.group(1))) for match in _ORDINAL_DIGIT.finditer(text))
    return sorted(matches)


def extract_ordinal(text: str) -> int | None:
    """첫 번째 서수 참조(1~5)를 반환합니다. 없으면 None."""
    if not text:
        return None
    matches = _ordinal_matches(text)
    return matches[0][1] if matches else None


def extract_all_ordinals(text: str) -> list[int]:
    """모든 서수 참조를 등장 순서대로 중복 없이 반환합니다."""
    if not text:
        return []
    seen: list[int] = []
    for _, index in _ordinal_matches(text):
        if index not in seen:
            seen.append(index)
    return seen


def classify_follow_up(text: str) -> bool:
    """이전 결과를 가리키는 대명사/서수/지시어/방향 표지가 있는지 판단합니다."""
    if not text or not text.strip():
        return False
    return any(
        pattern.search(text)
        for pattern in (
            _PRONOUN_MARKERS,
            _DEMONSTRATIVE_MARKERS,
            _DIRECTIONAL_MARKERS,
            _ORDINAL_MARKERS,
            _NUMBERED_REFERENCE,
            _COMPARISON_TRIGGERS,
        )
    )


def extract_fact_topic(text: str) -> str | None:
    """후속 질문이 묻는 사실 주제(parking/hours/price/...)를 반환합니다."""
    for topic, pattern in FACT_TOPICS:
        if pattern.search(text or ""):
            return topic
    return None


def classify_follow_up_detail(text: str) -> FollowUpKind:
    """후속 질문을 비교/상세/일반으로 세분화합니다."""
    if _COMPARISON_MARKERS.search(text) or _PAIRED_ORDINALS.search(text):
        return FollowUpKind.COMPARISON
    if _DETAIL_MARKERS.search(text) or extract_fact_topic(text) or _ORDINAL_MARKERS.search(text):
        return FollowUpKind.DETAIL
    return FollowUpKind.GENERAL


def classify_route(text: str) -> bool:
    """경로/동선 생성 요청인지 판단합니다."""
    if not text:
        return False
    return any(pattern.search(text) for pattern in _ROUTE_PATTERNS)


def extract_requested_count(text: str) -> int | None:
    """"N곳" 형태의 명시적 개수를 [2, 5] 범위로 보정해 반환합니다."""
    if not text:
        return None
    match = _COUNT_PATTERN.search(text)
    if not match:
        return None
    raw = match.group(1).lower()
    count = int(raw) if raw.isdigit() else _NUMBER_WORDS[raw]
    return min(MAX_REQUESTED_COUNT, max(MIN_REQUESTED_COUNT, count))


def classify_multi_place(text: str) -> bool:
    """여러 장소를 원하는 요청(명시적 개수 또는 탐색형 표현)인지 판단합니다."""
    if not text:
        return False
    return extract_requested_count(text) is not None or bool(_EXPLORATION_PATTERN.search(text))


def extract_place_indices(text: str) -> list[int]:
    """"места 1, 3 и 5" 형태의 명시적 번호 목록을 정렬·중복 제거해 반환합니다."""
    if not text or not _INDEX_LIST_TRIGGER.search(text):
        return []
    indices = {int(match.group(1)) for match in _INDEX_NUMBER.finditer(text)}
    return sorted(index for index in indices if 1 <= index <= MAX_PLACE_INDEX)


def _capitalize_name(name: str) -> str:
    words = []
    for word in name.split():
        words.append("-".join(part[:1].upper() + part[1:].lower() for part in word.split("-")))
    return " ".join(words)


def _strip_case_ending(word: str, *, genitive: bool) -> str:
    """러시아어 처소격/생격 어미를 단순 제거합니다."""
    if not re.match(r"[А-ЯЁа-яё]", word) or len(word) <= 3:
        return word
    if genitive:
        if word.endswith("ы"):
            return word[:-1] + "а"
        if word.endswith("а"):
            return word[:-1]
        return word
    if word.endswith("е"):
        return word[:-1]
    return word


def extract_city(text: str) -> str | None:
    """발화에서 도시명을 추출합니다.

    별칭 테이블(단어 경계 일치)을 먼저 확인하고, 이후 전치사/생격/소유격 패턴을 시도한다.
    그럴듯한 후보가 없으면 None.
    """
    if not text or not text.strip():
        return None

    for pattern, canonical in _CITY_ALIAS_PATTERNS:
        if pattern.search(text):
            return canonical

    candidates: list[tuple[str, bool]] = []
    candidates.extend((match.group(1), False) for match in _LOCATIVE_CITY.finditer(text))
    candidates.extend((match.group(1), True) for match in _GENITIVE_CITY.finditer(text))
    candidates.extend((match.group(1), False) for match in _POSSESSIVE_CITY.finditer(text))

    for raw, genitive in candidates:
        if raw.lower() in _CITY_STOPWORDS:
            continue
        words = raw.split()
        normalized = words[:-1] + [_strip_case_ending(words[-1], genitive=genitive)]
        return _capitalize_name(" ".join(normalized))
    return None


# (predicate, kind) 쌍을 정의된 순서대로 평가한다. 첫 일치가 결과가 된다.
UTTERANCE_CLASSIFIERS: tuple[tuple[UtterancePredicate, UtteranceKind], ...] = (
    (classify_route, UtteranceKind.ROUTE_REQUEST),
    (classify_follow_up, UtteranceKind.FOLLOW_UP),
)


def classify_utterance(text: str) -> UtteranceKind:
    """발화를 경로 요청 → 후속 질문 → 신규 검색 순서로 분류합니다."""
    for predicate, kind in UTTERANCE_CLASSIFIERS:
        if predicate(text):
            return kind
    return UtteranceKind.FRESH_SEARCH
