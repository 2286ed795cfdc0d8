"""응답 텍스트/버튼 구성 테스트."""

from urllib.parse import parse_qs, urlparse

import pytest

from app.schemas.place import PlaceReview, Venue
from app.services.response_formatter import (
    ACTION_NEXT,
    ACTION_ROUTE,
    build_maps_url,
    build_results_response,
    build_route_response,
    build_route_url,
    format_comparison,
    format_distance,
    format_fact_answer,
    format_reviews,
    format_venue,
    message,
    venue_buttons,
)
from tests.mocks.fakes import MOSCOW, make_venue, place_id


@pytest.mark.parametrize(("meters", "expected"), [(0, "0 м"), (999, "999 м"), (1000, "1.0 км"), (2400, "2.4 км")])
def test_format_distance(meters: int, expected: str) -> None:
    assert format_distance(meters) == expected


def test_format_venue_line() -> None:
    venue = Venue(name="Кофейня", rating=4.5, price_level=2, distance_meters=350, is_open_now=True, address="ул. Тверская, 1")

    text = format_venue(venue, 1)

    assert text.splitlines() == [
        "**1. Кофейня**",
        "⭐ 4.5 • 💰💰 • 350 м • ✅ Открыто",
        "📍 ул. Тверская, 1",
    ]


def test_maps_url_prefers_verified_id() -> None:
    venue = make_venue("Кофейня", suffix="a", lat=55.75, lon=37.61)

    query = parse_qs(urlparse(build_maps_url(venue)).query)

    assert query["query_place_id"] == [place_id("a")]
    assert query["query"] == ["55.75,37.61"]


def test_maps_url_falls_back_to_coordinates_then_source() -> None:
    with_coords = make_venue("Кофейня", lat=55.75, lon=37.61)
    only_source = Venue(name="Кофейня", source_uri="https://maps.google.com/?cid=1")

    assert "query_place_id" not in build_maps_url(with_coords)
    assert build_maps_url(only_source) == "https://maps.google.com/?cid=1"
    assert build_maps_url(Venue(name="Пусто")) is None


def test_route_url_with_waypoints() -> None:
    stops = [
        make_venue("A", lat=55.751, lon=37.611),
        make_venue("B", lat=55.752, lon=37.612),
        make_venue("C", lat=55.753, lon=37.613),
    ]

    url = build_route_url(MOSCOW, stops)

    assert url.startswith("https://www.google.com/maps/dir/?api=1&")
    assert "origin=55.7558,37.6173" in url
    assert "destination=55.753,37.613" in url
    assert "waypoints=55.751,37.611%7C55.752,37.612" in url
    assert url.endswith("travelmode=walking")


def test_route_url_without_origin_starts_at_first_stop() -> None:
    stops = [make_venue("A", lat=55.751, lon=37.611), make_venue("B", lat=55.752, lon=37.612)]

    url = build_route_url(None, stops)

    assert "origin=55.751,37.611" in url
    assert "destination=55.752,37.612" in url
    assert "waypoints" not in url


def test_route_url_requires_coordinates() -> None:
    with pytest.raises(ValueError):
        build_route_url(MOSCOW, [Venue(name="Без координат")])


def test_results_response_buttons() -> None:
    venues = [
        make_venue("A", suffix="a", lat=55.751, lon=37.611),
        make_venue("B", lat=55.752, lon=37.612),
    ]

    response = build_results_response(venues, show_more=True)

    assert len(response.buttons) == 3
    assert [button.action for button in response.buttons[0] if button.action] == [f"reviews:{place_id('a')}"]
    assert all(button.action is None for button in response.buttons[1])
    assert [button.action for button in response.buttons[-1]] == [ACTION_NEXT, ACTION_ROUTE]


def test_results_response_without_route_for_single_venue() -> None:
    response = build_results_response([make_venue("A", lat=55.751, lon=37.611)], ai_text="  Совет  ")

    assert response.text.endswith("Совет")
    assert all(button.action != ACTION_ROUTE for row in response.buttons for button in row)


def test_venue_buttons_skip_venues_without_links() -> None:
    assert venue_buttons([Venue(name="Пусто")]) == []


def test_route_response_lists_stops() -> None:
    stops = [make_venue("A", lat=55.751, lon=37.611), make_venue("B", lat=55.752, lon=37.612)]

    response = build_route_response(MOSCOW, stops)

    assert response.text.splitlines() == [message("route_ready", count=2), "1. A", "2. B"]
    assert response.buttons[0][0].url.startswith("https://www.google.com/maps/dir/")


def test_comparison_highlights_best_rating() -> None:
    a = Venue(name="A", rating=4.2, price_level=1, distance_meters=300)
    b = Venue(name="B", rating=4.8, is_open_now=True)

    text = format_comparison([(1, a), (2, b)])

    assert text.startswith("⚖️ Сравнение: 1. A vs 2. B")
    assert "⭐ Рейтинг: 4.2 | 4.8" in text
    assert "🏆 Выше рейтинг у №2: B" in text


def test_fact_answers() -> None:
    venue = Venue(name="Кафе", is_open_now=False, phone_number="+7 000", website="https://cafe.example")

    assert "парковк" in format_fact_answer(venue, "parking").lower()
    assert "https://cafe.example" in format_fact_answer(venue, "menu")
    assert "Сейчас закрыто" in format_fact_answer(venue, "hours")
    assert "+7 000" in format_fact_answer(venue, "phone")


def test_reviews_formatting() -> None:
    venue = Venue(
        name="Кафе",
        reviews=[PlaceReview(author="Анна", rating=5, text="Отлично"), PlaceReview(rating=2, text="Медленно")],
    )

    text = format_reviews(venue)

    assert "👍 Анна (5/5)\nОтлично" in text
    assert "👎 Аноним (2/5)\nМедленно" in text
    assert format_reviews(Venue(name="Пусто")) == message("no_reviews", name="Пусто")


def test_message_catalog_formats_placeholders() -> None:
    assert message("invalid_index", count=3).endswith("от 1 до 3.")
