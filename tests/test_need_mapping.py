"""암시적 요구 매핑 테스트."""

import pytest

from app.core.need_mapping import NEED_PATTERNS, map_need


@pytest.mark.parametrize(
    ("text", "intent"),
    [
        ("Я промочил ноги, что делать?", "need_footwear"),
        ("где туалет срочно", "need_restroom"),
        ("болит голова", "need_pharmacy"),
        ("сел телефон", "need_charging"),
        ("нужен банкомат", "need_cash"),
        ("я голодный", "need_food"),
        ("потерял ключи", "need_locksmith"),
        ("куда сходить с детьми", "with_children"),
        ("хочу поработать с ноутбуком", "need_workspace"),
    ],
)
def test_map_need_intents(text: str, intent: str) -> None:
    match = map_need(text)

    assert match is not None
    assert match.intent == intent
    assert match.original_query == text


def test_map_need_returns_none_for_plain_query() -> None:
    assert map_need("Найди кофейню") is None
    assert map_need("") is None


def test_patterns_are_sorted_by_priority() -> None:
    priorities = [pattern.priority for pattern in NEED_PATTERNS]

    assert priorities == sorted(priorities, reverse=True)


def test_higher_priority_wins() -> None:
    match = map_need("заболел и голодный")

    assert match is not None
    assert match.intent == "need_pharmacy"
    assert "restaurant" in match.exclude_types
