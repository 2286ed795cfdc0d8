"""사용자 응답 텍스트와 버튼 구성.

모든 사용자 노출 문구는 러시아어 메시지 카탈로그에서만 가져온다.
"""

from __future__ import annotations

from collections.abc import Sequence
from urllib.parse import quote, urlencode

from app.schemas.dialogue import ActionButton, ResponseDescriptor
from app.schemas.place import Location, PlaceReview, Venue

MAPS_SEARCH_URL = "https://www.google.com/maps/search/"
MAPS_DIRECTIONS_URL = "https://www.google.com/maps/dir/"
MAX_ADDRESS_LENGTH = 100

ACTION_NEXT = "next"
ACTION_ROUTE = "route"
ACTION_REVIEWS_PREFIX = "reviews:"

MESSAGES: dict[str, str] = {
    "welcome": (
        "👋 Привет! Я SpotFinder, помогу найти кафе, аптеки, магазины и многое другое рядом с тобой.\n\n"
        "Чтобы начать, поделись своей геолокацией 📍"
    ),
    "location_request": (
        "📍 Чтобы я мог найти что-то рядом с тобой, пожалуйста, отправь свою геолокацию.\n\n"
        "Нажми на скрепку (📎) → Геолокация"
    ),
    "location_received": (
        "✅ Геолокация получена! Теперь можешь спрашивать что угодно:\n\n"
        '• "Найди кофейню с Wi-Fi"\n'
        '• "Где ближайшая аптека?"\n'
        '• "Хочу поесть что-то вкусное"'
    ),
    "error_generic": "😕 Упс, что-то пошло не так. Попробуй еще раз.",
    "no_results": "😞 К сожалению, ничего не нашел рядом. Попробуй изменить запрос.",
    "quota_cached": "⚠️ Лимит запросов на сегодня исчерпан. Показываю сохраненные результаты, они могут быть неактуальны.",
    "quota_exhausted": "⏳ Лимит запросов на сегодня исчерпан. Попробуй позже.",
    "no_more_results": "Больше мест не найдено.",
    "no_previous_results": "Не могу найти предыдущие результаты. Попробуй новый поиск.",
    "invalid_index": "Такого номера нет в списке. Выбери место от 1 до {count}.",
    "invalid_place_id": "Ошибка: некорректный идентификатор места.",
    "details_unavailable": "Не удалось загрузить информацию о месте. Попробуйте другое место.",
    "route_not_enough": "Для маршрута нужно хотя бы два места с координатами.",
    "route_ready": "🚶 Маршрут через {count} мест(а):",
    "no_reviews": 'К сожалению, для места "{name}" пока нет отзывов.',
    "search_intro": "🔍 Вот что я нашел:",
    "next_intro": "➡️ Еще варианты:",
    "help": (
        "❓ Как пользоваться ботом:\n\n"
        "1️⃣ Отправь свою геолокацию\n"
        "2️⃣ Напиши, что ищешь, в свободной форме\n"
        "3️⃣ Спрашивай про найденные места: «а у второго есть парковка?»"
    ),
    "session_reset": "🔄 Диалог сброшен. Отправь геолокацию, чтобы начать заново.",
}

BUTTON_LABELS: dict[str, str] = {
    "map": "🗺 На карте",
    "reviews": "💬 Отзывы",
    "next": "➡️ Показать еще",
    "route": "🚶 Маршрут",
    "open_route": "🗺 Открыть маршрут",
}

FACT_NOT_FOUND: dict[str, str] = {
    "parking": "Информация о парковке не найдена. Рекомендую позвонить и уточнить.",
    "menu": "Меню в открытых данных не найдено. Лучше уточнить на месте или на сайте.",
    "wifi": "Про Wi-Fi данных нет. Рекомендую уточнить у заведения.",
}


def message(key: str, **kwargs: object) -> str:
    template = MESSAGES[key]
    return template.format(**kwargs) if kwargs else template


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def format_distance(meters: int) -> str:
    if meters < 1000:
        return f"{round(meters)} м"
    return f"{meters / 1000:.1f} км"


def format_price_level(level: int) -> str:
    return "💰" * max(1, min(level, 4))


def _venue_summary_line(venue: Venue) -> str:
    parts: list[str] = []
    if venue.rating is not None:
        parts.append(f"⭐ {venue.rating:.1f}")
    if venue.price_level:
        parts.append(format_price_level(venue.price_level))
    if venue.distance_meters is not None:
        parts.append(format_distance(venue.distance_meters))
    if venue.is_open_now is not None:
        parts.append("✅ Открыто" if venue.is_open_now else "❌ Закрыто")
    return " • ".join(parts)


def format_venue(venue: Venue, index: int | None = None) -> str:
    title = f"{index}. {venue.name}" if index is not None else venue.name
    lines = [f"**{title}**"]
    summary = _venue_summary_line(venue)
    if summary:
        lines.append(summary)
    if venue.address:
        lines.append(f"📍 {truncate(venue.address, MAX_ADDRESS_LENGTH)}")
    return "\n".join(lines)


def format_venue_list(venues: Sequence[Venue], intro: str | None = None, start: int = 1) -> str:
    """번호가 붙은 장소 목록 텍스트를 만듭니다."""
    if not venues:
        return message("no_results")
    blocks = [intro or message("search_intro")]
    blocks.extend(format_venue(venue, index) for index, venue in enumerate(venues, start=start))
    return "\n\n".join(blocks)


def format_venue_details(venue: Venue) -> str:
    lines = [f"📍 **{venue.name}**", ""]
    if venue.address:
        lines.append(f"🏠 Адрес: {venue.address}")
    if venue.rating is not None:
        lines.append(f"⭐ Рейтинг: {venue.rating:.1f}/5")
    if venue.price_level:
        lines.append(f"💰 Цены: {format_price_level(venue.price_level)}")
    if venue.distance_meters is not None:
        lines.append(f"📏 Расстояние: {format_distance(venue.distance_meters)}")
    if venue.is_open_now is not None:
        lines.append("✅ Открыто сейчас" if venue.is_open_now else "❌ Закрыто")
    if venue.phone_number:
        lines.append(f"📞 {venue.phone_number}")
    if venue.editorial_summary:
        lines.extend(["", venue.editorial_summary])
    return "\n".join(lines).strip()


def format_fact_answer(venue: Venue, topic: str | None) -> str:
    """후속 질문의 사실 주제에 맞춰 한 장소에 대한 답변을 만듭니다."""
    name = venue.name
    if topic in FACT_NOT_FOUND:
        extra = f"\n🌐 {venue.website}" if topic == "menu" and venue.website else ""
        return f"**{name}**\n\n{FACT_NOT_FOUND[topic]}{extra}"
    if topic == "hours":
        if venue.is_open_now is None:
            status = "Часы работы неизвестны. Лучше уточнить по телефону."
        else:
            status = "✅ Сейчас открыто." if venue.is_open_now else "❌ Сейчас закрыто."
        return f"⏰ **{name}**\n\n{status}"
    if topic == "price":
        price = f"Ценовая категория: {format_price_level(venue.price_level)}" if venue.price_level else "Цены не указаны."
        return f"💰 **{name}**\n\n{price}"
    if topic in ("rating", "reviews"):
        rating = f"Рейтинг: {venue.rating:.1f}/5" if venue.rating is not None else "Рейтинг не указан."
        return f"⭐ **{name}**\n\n{rating}"
    if topic == "address":
        return f"📍 **{name}**\n\nАдрес: {venue.address or 'Не указан'}"
    if topic == "phone":
        return f"📞 **{name}**\n\n{venue.phone_number or 'Телефон не указан.'}"
    return format_venue_details(venue)


def _comparison_line(label: str, values: Sequence[str]) -> str:
    return f"{label}: " + " | ".join(values)


def format_comparison(venues: Sequence[tuple[int, Venue]]) -> str:
    """(번호, 장소) 목록을 평점/가격/거리/영업 여부로 나란히 비교합니다."""
    header = "⚖️ Сравнение: " + " vs ".join(f"{index}. {venue.name}" for index, venue in venues)
    rows = [
        _comparison_line(
            "⭐ Рейтинг",
            [f"{venue.rating:.1f}" if venue.rating is not None else "—" for _, venue in venues],
        ),
        _comparison_line(
            "💰 Цены",
            [format_price_level(venue.price_level) if venue.price_level else "—" for _, venue in venues],
        ),
        _comparison_line(
            "📏 Расстояние",
            [format_distance(venue.distance_meters) if venue.distance_meters is not None else "—" for _, venue in venues],
        ),
        _comparison_line(
            "🕐 Сейчас",
            [
                "—" if venue.is_open_now is None else ("открыто" if venue.is_open_now else "закрыто")
                for _, venue in venues
            ],
        ),
    ]
    rated = [(index, venue) for index, venue in venues if venue.rating is not None]
    if len(rated) >= 2:
        best_index, best = max(rated, key=lambda item: item[1].rating or 0.0)
        rows.append(f"\n🏆 Выше рейтинг у №{best_index}: {best.name}")
    return "\n".join([header, "", *rows])


def _review_emoji(review: PlaceReview) -> str:
    if review.rating is None:
        return "😐"
    if review.rating >= 4:
        return "👍"
    if review.rating <= 2:
        return "👎"
    return "😐"


def format_reviews(venue: Venue) -> str:
    if not venue.reviews:
        return message("no_reviews", name=venue.name)
    blocks = [f"📝 **Отзывы о {venue.name}**"]
    for review in venue.reviews:
        rating = f" ({review.rating:g}/5)" if review.rating is not None else ""
        blocks.append(f"{_review_emoji(review)} {review.author or 'Аноним'}{rating}\n{review.text}")
    return "\n\n".join(blocks)


def _coordinates(location: Location) -> str:
    return f"{location.lat},{location.lon}"


def build_maps_url(venue: Venue) -> str | None:
    """검증된 ID가 있으면 query_place_id, 없으면 좌표, 그것도 없으면 출처 URI를 사용합니다."""
    if venue.has_verified_id:
        query = _coordinates(venue.coordinates) if venue.coordinates else venue.name
        return f"{MAPS_SEARCH_URL}?{urlencode({'api': 1, 'query': query, 'query_place_id': venue.place_id})}"
    if venue.coordinates is not None:
        return f"{MAPS_SEARCH_URL}?{urlencode({'api': 1, 'query': _coordinates(venue.coordinates)})}"
    return venue.source_uri


def build_route_url(origin: Location | None, venues: Sequence[Venue]) -> str:
    """도보 다중 경유 경로 링크. 마지막 장소가 목적지, 나머지는 경유지가 됩니다."""
    stops = [venue for venue in venues if venue.coordinates is not None]
    if not stops:
        raise ValueError("route requires at least one venue with coordinates")

    if origin is None:
        origin = stops[0].coordinates
        stops = stops[1:] or stops

    params = [
        "api=1",
        f"origin={_coordinates(origin)}",
        f"destination={_coordinates(stops[-1].coordinates)}",
    ]
    waypoints = [_coordinates(venue.coordinates) for venue in stops[:-1]]
    if waypoints:
        params.append("waypoints=" + "%7C".join(quote(point, safe=",") for point in waypoints))
    params.append("travelmode=walking")
    return f"{MAPS_DIRECTIONS_URL}?{'&'.join(params)}"


def venue_buttons(venues: Sequence[Venue], start: int = 1) -> list[list[ActionButton]]:
    rows: list[list[ActionButton]] = []
    for index, venue in enumerate(venues, start=start):
        row: list[ActionButton] = []
        url = build_maps_url(venue)
        if url:
            row.append(ActionButton(label=f"{index}. {BUTTON_LABELS['map']}", url=url))
        if venue.has_verified_id:
            row.append(
                ActionButton(label=f"{index}. {BUTTON_LABELS['reviews']}", action=f"{ACTION_REVIEWS_PREFIX}{venue.place_id}")
            )
        if row:
            rows.append(row)
    return rows


def build_results_response(
    venues: Sequence[Venue],
    *,
    intro: str | None = None,
    ai_text: str | None = None,
    start: int = 1,
    show_more: bool = False,
) -> ResponseDescriptor:
    """검색 결과 응답: 목록 텍스트, 장소별 버튼, 더 보기/경로 버튼."""
    text = format_venue_list(venues, intro=intro, start=start)
    if ai_text and ai_text.strip():
        text = f"{text}\n\n{truncate(ai_text.strip(), 1500)}"

    buttons = venue_buttons(venues, start=start)
    global_row: list[ActionButton] = []
    if show_more:
        global_row.append(ActionButton(label=BUTTON_LABELS["next"], action=ACTION_NEXT))
    if sum(1 for venue in venues if venue.coordinates is not None) >= 2:
        global_row.append(ActionButton(label=BUTTON_LABELS["route"], action=ACTION_ROUTE))
    if global_row:
        buttons.append(global_row)
    return ResponseDescriptor(text=text, buttons=buttons)


def build_route_response(origin: Location | None, venues: Sequence[Venue]) -> ResponseDescriptor:
    url = build_route_url(origin, venues)
    lines = [message("route_ready", count=len(venues))]
    lines.extend(f"{index}. {venue.name}" for index, venue in enumerate(venues, start=1))
    return ResponseDescriptor(
        text="\n".join(lines),
        buttons=[[ActionButton(label=BUTTON_LABELS["open_route"], url=url)]],
    )


def build_location_request() -> ResponseDescriptor:
    return ResponseDescriptor(text=message("location_request"), request_location=True)


def text_response(key: str, **kwargs: object) -> ResponseDescriptor:
    return ResponseDescriptor(text=message(key, **kwargs))
