"""검색 필터 추출 테스트."""

import asyncio
from types import SimpleNamespace

from app.schemas.enums import SortBy
from app.services import filter_extractor as filter_module
from app.services.filter_extractor import FilterExtractor, extract_filters_heuristic
from tests.mocks.fakes import make_settings


def test_heuristic_min_rating_and_open_now() -> None:
    filters = extract_filters_heuristic("кафе с рейтингом выше 4.5, открыто сейчас")

    assert filters.min_rating == 4.5
    assert filters.open_now is True
    assert filters.sort_by is None


def test_heuristic_stars_with_comma() -> None:
    assert extract_filters_heuristic("ресторан 4,2 звезды").min_rating == 4.2


def test_heuristic_cheap_and_cheapest() -> None:
    assert extract_filters_heuristic("недорогое кафе").max_price_level == 1

    cheapest = extract_filters_heuristic("самый дешевый бар")
    assert cheapest.sort_by == SortBy.PRICE
    assert cheapest.max_price_level == 1


def test_heuristic_sort_by_distance_and_rating() -> None:
    assert extract_filters_heuristic("ближайшая аптека").sort_by == SortBy.DISTANCE
    assert extract_filters_heuristic("лучшие рестораны").sort_by == SortBy.RATING


def test_heuristic_empty_for_plain_query() -> None:
    assert extract_filters_heuristic("найди кофейню").is_empty


def test_extractor_without_llm_key_uses_heuristic() -> None:
    extractor = FilterExtractor(make_settings(OPENAI_API_KEY=""))

    filters = asyncio.run(extractor.extract("ближайшая аптека"))

    assert filters.sort_by == SortBy.DISTANCE


def test_extractor_clamps_llm_output(monkeypatch) -> None:
    async def fake_ainvoke(stage, messages, *, settings):
        return SimpleNamespace(
            content='```json\n{"min_rating": 7, "max_price_level": -1, "open_now": true, "sort_by": "RATING"}\n```'
        )

    monkeypatch.setattr(filter_module, "ainvoke", fake_ainvoke)
    extractor = FilterExtractor(make_settings(OPENAI_API_KEY="test-key"))

    filters = asyncio.run(extractor.extract("лучшие открытые кафе"))

    assert filters.min_rating == 5.0
    assert filters.max_price_level == 0
    assert filters.open_now is True
    assert filters.sort_by == SortBy.RATING


def test_extractor_falls_back_when_llm_fails(monkeypatch) -> None:
    async def failing_ainvoke(stage, messages, *, settings):
        raise RuntimeError("boom")

    monkeypatch.setattr(filter_module, "ainvoke", failing_ainvoke)
    extractor = FilterExtractor(make_settings(OPENAI_API_KEY="test-key"))

    filters = asyncio.run(extractor.extract("недорогое кафе"))

    assert filters.max_price_level == 1
