"""암시적 요구(증상/상황) 표현을 명시적 검색어로 매핑하는 패턴 테이블."""

from __future__ import annotations

import re
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class NeedPattern:
    """하나의 요구 범주와 그 트리거 패턴."""

    intent: str
    patterns: tuple[re.Pattern[str], ...]
    suggested_query: str
    category: str
    priority: int
    exclude_types: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class NeedMatch:
    """매핑 결과."""

    intent: str
    category: str
    suggested_query: str
    original_query: str
    exclude_types: tuple[str, ...]
    matched_pattern: str


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


_NEED_PATTERNS: tuple[NeedPattern, ...] = (
    NeedPattern(
        intent="need_footwear",
        patterns=_compile(
            r"промо[кч](?:ил|ла|ли)?\s+(?:ноги|ног|обувь)",
            r"вымок(?:ла|ли)?\s+обувь",
            r"мокр(?:ая|ые)\s+(?:ноги|ног|обувь)",
            r"натер(?:ла|ли)?\s+ног",
            r"нужна?\s+(?:новая|сухая)\s+обувь",
        ),
        suggested_query="обувные магазины поблизости, открыто сейчас",
        category="shopping",
        priority=100,
        exclude_types=("lodging",),
    ),
    NeedPattern(
        intent="need_restroom",
        patterns=_compile(
            r"(?:нужен|ищу|где)\s+туалет",
            r"туалет\s+(?:срочно|очень\s+нужен)",
            r"(?:общественный|публичный)\s+туалет",
            r"\brestroom\b|\btoilet\b",
        ),
        suggested_query="торговые центры, кафе с туалетами, общественные туалеты рядом",
        category="facilities",
        priority=100,
        exclude_types=("lodging",),
    ),
    NeedPattern(
        intent="need_pharmacy",
        patterns=_compile(
            r"заболел(?:а|и)?",
            r"плохо\s+(?:себя\s+)?чувствую",
            r"болит\s+(?:голова|горло|живот|зуб)",
            r"нужн(?:о|а|ы)\s+(?:лекарств|таблетк|медикамент)",
            r"температура",
        ),
        suggested_query="аптеки рядом, работающие сейчас",
        category="health",
        priority=95,
        exclude_types=("lodging", "restaurant"),
    ),
    NeedPattern(
        intent="need_charging",
        patterns=_compile(
            r"(?:сел|разрядил(?:ся|ась)|сядет)\s+(?:телефон|батарея|аккумулятор)",
            r"нет\s+зарядки",
            r"(?:нужна|ищу)\s+розетк",
            r"зарядить\s+телефон",
            r"(?:нужно|надо)\s+подзарядить",
        ),
        suggested_query="кафе с розетками и Wi-Fi, торговые центры рядом",
        category="services",
        priority=90,
        exclude_types=("lodging",),
    ),
    NeedPattern(
        intent="need_cash",
        patterns=_compile(
            r"(?:нужны|нужно\s+снять)\s+деньги",
            r"банкомат",
            r"(?:снять|получить)\s+(?:наличные|налич|кэш)",
            r"\batm\b",
        ),
        suggested_query="банкоматы и банки поблизости, работающие сейчас",
        category="finance",
        priority=90,
        exclude_types=("lodging", "restaurant"),
    ),
    NeedPattern(
        intent="need_food",
        patterns=_compile(
            r"голодн(?:ый|ая|ые)",
            r"(?:есть|кушать)\s+хоч(?:у|ется)",
            r"умираю\s+(?:с|от)\s+голод",
            r"срочно\s+(?:поесть|покушать|перекусить)",
        ),
        suggested_query="кафе и рестораны поблизости, открыто сейчас, быстрое обслуживание",
        category="food",
        priority=85,
        exclude_types=("lodging",),
    ),
    NeedPattern(
        intent="need_locksmith",
        patterns=_compile(
            r"потерял(?:а|и)?\s+ключи",
            r"сделать\s+ключи",
            r"(?:дубликат|копия)\s+ключ",
        ),
        suggested_query="мастерские по изготовлению ключей",
        category="services",
        priority=85,
        exclude_types=("lodging",),
    ),
    NeedPattern(
        intent="with_children",
        patterns=_compile(
            r"с\s+(?:детьми|ребенком|ребёнком)",
            r"для\s+(?:детей|ребенка|ребёнка)",
            r"детск(?:ая|ое)\s+(?:площадк|кафе|место)",
            r"family[\s-]friendly",
        ),
        suggested_query="детские площадки, семейные кафе, развлечения для детей",
        category="family",
        priority=85,
        exclude_types=("bar", "night_club", "lodging"),
    ),
    NeedPattern(
        intent="need_workspace",
        patterns=_compile(
            r"(?:нужно|хочу|надо)\s+поработать",
            r"с\s+ноутбуком",
            r"коворкинг|coworking",
            r"место\s+(?:для\s+)?работы",
        ),
        suggested_query="кафе с Wi-Fi и розетками, коворкинги, тихие места для работы",
        category="workspace",
        priority=80,
        exclude_types=("lodging",),
    ),
    NeedPattern(
        intent="need_reading_space",
        patterns=_compile(
            r"(?:хочу|нужно)\s+(?:по)?читать",
            r"почитать\s+книг",
            r"библиотек|читальн",
        ),
        suggested_query="библиотеки, тихие кафе для чтения",
        category="leisure",
        priority=75,
        exclude_types=("lodging",),
    ),
)

NEED_PATTERNS: tuple[NeedPattern, ...] = tuple(sorted(_NEED_PATTERNS, key=lambda item: -item.priority))


def map_need(text: str, patterns: tuple[NeedPattern, ...] = NEED_PATTERNS) -> NeedMatch | None:
    """우선순위가 높은 패턴부터 검사해 첫 번째 일치 항목을 반환합니다."""
    if not text or not text.strip():
        return None

    for need in patterns:
        for pattern in need.patterns:
            if pattern.search(text):
                return NeedMatch(
                    intent=need.intent,
                    category=need.category,
                    suggested_query=need.suggested_query,
                    original_query=text,
                    exclude_types=need.exclude_types,
                    matched_pattern=pattern.pattern,
                )
    return None
