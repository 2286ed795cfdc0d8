"""AI 그라운딩 검색용 프롬프트 구성."""

from __future__ import annotations

from datetime import datetime

from app.core.need_mapping import NeedMatch
from app.schemas.enums import UrgencyTier
from app.schemas.place import SearchFilters, UserPreferences
from app.schemas.search import SearchContext

CITY_MARKER = "CITY:"
NO_CITY_VALUE = "NONE"

_HIGH_URGENCY_KEYWORDS = (
    "срочно",
    "быстро",
    "прямо сейчас",
    "заболел",
    "болит",
    "плохо",
    "аптек",
    "лекарств",
    "банкомат",
    "деньги",
    "снять",
    "туалет",
    "urgent",
    "asap",
    "pharmacy",
)
_LOW_URGENCY_KEYWORDS = (
    "что тут",
    "покажи",
    "есть ли",
    "интересн",
    "погулять",
    "посмотреть",
    "вариант",
    "explore",
    "interesting",
)

_TIME_BUCKETS: tuple[tuple[int, int, str], ...] = (
    (6, 12, "утро"),
    (12, 18, "день"),
    (18, 23, "вечер"),
)

_PRICE_LABELS = {0: "бесплатно", 1: "недорого", 2: "средние цены", 3: "дорого", 4: "очень дорого"}

SYSTEM_INSTRUCTIONS = """\
Ты помощник по поиску мест рядом с пользователем. Отвечай по-русски, кратко и по делу.
Используй данные Google Maps. Предлагай только реально существующие, конкретные заведения.
Не предлагай гостиницы, если пользователь не просит о ночлеге.
Первая строка ответа должна иметь вид "CITY: <город>", если пользователь явно назвал город,
иначе "CITY: NONE". Затем сам ответ.
"""


def detect_urgency(text: str) -> UrgencyTier:
    """긴급 키워드(건강/안전/금융)는 HIGH, 탐색형 키워드는 LOW, 그 외는 MEDIUM."""
    lowered = (text or "").lower()
    if any(keyword in lowered for keyword in _HIGH_URGENCY_KEYWORDS):
        return UrgencyTier.HIGH
    if any(keyword in lowered for keyword in _LOW_URGENCY_KEYWORDS):
        return UrgencyTier.LOW
    return UrgencyTier.MEDIUM


def time_of_day_bucket(hour: int) -> str:
    for start, end, label in _TIME_BUCKETS:
        if start <= hour < end:
            return label
    return "ночь"


def _urgency_instruction(tier: UrgencyTier) -> str:
    if tier == UrgencyTier.HIGH:
        return "Срочность: высокая. Ставь в приоритет ближайшие места, которые открыты прямо сейчас."
    if tier == UrgencyTier.LOW:
        return "Срочность: низкая. Можно предложить интересные варианты чуть дальше."
    return "Срочность: обычная. Соблюдай баланс между расстоянием и качеством."


def _context_lines(context: SearchContext, limit: int) -> list[str]:
    lines: list[str] = []
    if context.last_query:
        lines.append(f'Предыдущий запрос пользователя: "{context.last_query}"')
    if context.venues:
        lines.append("Ранее показанные места:")
        for index, venue in enumerate(context.venues[:limit], start=1):
            rating = f" (⭐{venue.rating:.1f})" if venue.rating is not None else ""
            lines.append(f"{index}. {venue.name}{rating}")
    return lines


def _preference_lines(preferences: UserPreferences) -> list[str]:
    lines: list[str] = []
    if preferences.dietary:
        lines.append(f"Ограничения в питании: {', '.join(preferences.dietary)}")
    if preferences.transport:
        lines.append(f"Способ передвижения: {preferences.transport}")
    if preferences.notes:
        lines.append(f"Заметки пользователя: {preferences.notes}")
    return lines


def _filter_lines(filters: SearchFilters) -> list[str]:
    lines: list[str] = []
    if filters.min_rating is not None:
        lines.append(f"Рейтинг не ниже {filters.min_rating:.1f}.")
    if filters.max_price_level is not None:
        lines.append(f"Цены: не выше уровня «{_PRICE_LABELS[filters.max_price_level]}».")
    if filters.open_now:
        lines.append("Только места, открытые сейчас.")
    return lines


def build_search_prompt(
    query: str,
    *,
    now: datetime,
    context: SearchContext | None = None,
    preferences: UserPreferences | None = None,
    filters: SearchFilters | None = None,
    need: NeedMatch | None = None,
    requested_count: int | None = None,
    context_limit: int = 5,
) -> str:
    """검색 질의와 대화 맥락으로 그라운딩 검색 프롬프트를 만듭니다."""
    sections: list[str] = [
        SYSTEM_INSTRUCTIONS.strip(),
        f"Время суток: {time_of_day_bucket(now.hour)}.",
        _urgency_instruction(detect_urgency(query)),
    ]

    if context is not None:
        sections.extend(_context_lines(context, context_limit))
    if preferences is not None and not preferences.is_empty:
        sections.extend(_preference_lines(preferences))
    if filters is not None:
        sections.extend(_filter_lines(filters))
    if need is not None:
        sections.append(f"Скорее всего пользователю нужно: {need.suggested_query}.")
        if need.exclude_types:
            sections.append(f"Не предлагай места типов: {', '.join(need.exclude_types)}.")
    if requested_count:
        sections.append(f"Предложи ровно {requested_count} разных мест.")

    sections.append(f"Запрос пользователя: {query.strip()}")
    return "\n".join(sections)

