"""발화에서 검색 필터(평점/가격/영업 중/정렬)를 추출합니다."""

from __future__ import annotations

import asyncio
import re

from langchain_core.output_parsers import PydanticOutputParser
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field

from app.core.config import Settings
from app.core.llm_router import Stage, ainvoke, is_llm_configured
from app.core.logger import get_logger
from app.core.timeout_policy import build_timeout_policy
from app.schemas.enums import SortBy
from app.schemas.place import SearchFilters

logger = get_logger(__name__)

FILTER_SYSTEM_PROMPT = """\
Ты извлекаешь фильтры поиска мест из запроса пользователя.
Правила:
- min_rating: минимальный рейтинг от 1 до 5, только если пользователь явно его задал.
- max_price_level: максимальный уровень цен от 0 до 4 ("недорого" = 1, "средние цены" = 2).
- open_now: true, только если пользователь просит открытые сейчас места.
- sort_by: rating | price | distance, только если пользователь просит сортировку ("лучшие", "дешёвые", "ближайшие").
- Всё, что не указано явно, оставляй null.
Отвечай только JSON.
"""

FILTER_USER_PROMPT = """\
Запрос пользователя: {query}

{format_instructions}
"""


class FilterDraft(BaseModel):
    """LLM 출력 초안. 범위 보정은 SearchFilters에서 수행한다."""

    min_rating: float | None = Field(default=None)
    max_price_level: int | None = Field(default=None)
    open_now: bool | None = Field(default=None)
    sort_by: str | None = Field(default=None)


_MIN_RATING_PATTERN = re.compile(
    r"(?:рейтинг\w*|оценк\w*|rating)\s*(?:выше|от|не\s+ниже|больше|более|above|over|at\s+least|>=?)?\s*(\d(?:[.,]\d)?)",
    re.IGNORECASE,
)
_STARS_PATTERN = re.compile(r"(\d(?:[.,]\d)?)\s*(?:\+\s*)?(?:звезд\w*|stars?|★|⭐)", re.IGNORECASE)
_CHEAP_PATTERN = re.compile(r"недорог|дешев|дешёв|бюджетн|эконом|cheap|inexpensive|budget", re.IGNORECASE)
_MID_PRICE_PATTERN = re.compile(r"средн\w+\s+цен|moderate(?:ly)?\s+priced", re.IGNORECASE)
_OPEN_NOW_PATTERN = re.compile(
    r"открыт\w*\s+сейчас|работа\w*\s+сейчас|сейчас\s+открыт\w*|сейчас\s+работа\w*|open\s+now|открыто",
    re.IGNORECASE,
)
_SORT_RATING_PATTERN = re.compile(r"лучш\w*|по\s+рейтингу|самы\w+\s+популярн\w*|top[\s-]rated|best", re.IGNORECASE)
_SORT_PRICE_PATTERN = re.compile(r"самы\w+\s+дешев\w*|самы\w+\s+дешёв\w*|cheapest", re.IGNORECASE)
_SORT_DISTANCE_PATTERN = re.compile(r"ближайш\w*|поближе|nearest|closest", re.IGNORECASE)


def _parse_float(raw: str) -> float | None:
    try:
        return float(raw.replace(",", "."))
    except ValueError:
        return None


def extract_filters_heuristic(text: str) -> SearchFilters:
    """LLM 없이 정규식으로 필터를 추출합니다."""
    if not text:
        return SearchFilters()

    min_rating: float | None = None
    if match := (_MIN_RATING_PATTERN.search(text) or _STARS_PATTERN.search(text)):
        min_rating = _parse_float(match.group(1))

    sort_by: SortBy | None = None
    max_price_level: int | None = None
    if _SORT_PRICE_PATTERN.search(text):
        sort_by = SortBy.PRICE
        max_price_level = 2
    elif _SORT_DISTANCE_PATTERN.search(text):
        sort_by = SortBy.DISTANCE
    elif _SORT_RATING_PATTERN.search(text):
        sort_by = SortBy.RATING

    if _CHEAP_PATTERN.search(text):
        max_price_level = 1 if max_price_level is None else min(max_price_level, 1)
    elif _MID_PRICE_PATTERN.search(text):
        max_price_level = 2

    open_now = True if _OPEN_NOW_PATTERN.search(text) else None
    return SearchFilters(
        min_rating=min_rating,
        max_price_level=max_price_level,
        open_now=open_now,
        sort_by=sort_by,
    )


def _strip_code_fence(text: str) -> str:
    content = (text or "").strip()
    if content.startswith("```"):
        parts = content.split("```")
        if len(parts) > 1:
            content = parts[1].strip()
            if content.startswith("json"):
                content = content[4:].strip()
    return content.strip()


class FilterExtractor:
    """LLM 기반 필터 추출기. 실패 시 휴리스틱으로 대체합니다."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._timeout_seconds = build_timeout_policy(settings).llm_timeout_seconds

    async def extract(self, text: str) -> SearchFilters:
        heuristic = extract_filters_heuristic(text)
        if not is_llm_configured(self._settings):
            return heuristic

        parser = PydanticOutputParser(pydantic_object=FilterDraft)
        prompt = ChatPromptTemplate.from_messages([("system", FILTER_SYSTEM_PROMPT), ("human", FILTER_USER_PROMPT)])
        messages = prompt.format_messages(query=text, format_instructions=parser.get_format_instructions())

        try:
            response = await asyncio.wait_for(
                ainvoke(Stage.FILTER_EXTRACTION, messages, settings=self._settings),
                timeout=self._timeout_seconds,
            )
            draft = parser.parse(_strip_code_fence(response.content))
        except TimeoutError:
            logger.warning("Filter extraction timed out; using heuristics")
            return heuristic
        except Exception as exc:
            logger.warning("Filter extraction failed; using heuristics: %s", exc)
            return heuristic

        extracted = SearchFilters.model_validate(draft.model_dump())
        logger.info(
            "Filters extracted: min_rating=%s max_price_level=%s open_now=%s sort_by=%s",
            extracted.min_rating,
            extracted.max_price_level,
            extracted.open_now,
            extracted.sort_by,
        )
        return extracted
