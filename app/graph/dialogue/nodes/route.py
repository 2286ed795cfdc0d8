"""경로 요청 처리 노드."""

from __future__ import annotations

from collections.abc import Sequence

from langchain_core.runnables import RunnableConfig

from app.core.intent_heuristics import extract_place_indices, extract_requested_count
from app.core.logger import get_logger
from app.graph.dialogue.nodes.search import LODGING_TYPE, run_venue_search
from app.graph.dialogue.state import DialogueDeps, DialogueState
from app.schemas.dialogue import ActionButton
from app.schemas.place import Venue
from app.services.response_formatter import BUTTON_LABELS, build_route_response, build_route_url

logger = get_logger(__name__)

MIN_ROUTE_STOPS = 2


def select_route_stops(
    venues: Sequence[Venue],
    indices: Sequence[int] = (),
    count: int | None = None,
    limit: int = 5,
) -> list[Venue]:
    """번호 목록, 요청 개수, 전체 순으로 경로에 넣을 장소를 고릅니다. 좌표 없는 장소는 제외합니다."""
    if indices:
        chosen = [venues[index - 1] for index in indices if 1 <= index <= len(venues)]
    else:
        chosen = list(venues)[: count or limit]
    return [venue for venue in chosen if venue.coordinates is not None][:limit]


async def build_route(state: DialogueState, config: RunnableConfig) -> DialogueState:
    """표시된 장소로 도보 경로를 만들고, 부족하면 다중 장소 검색을 수행합니다."""
    deps: DialogueDeps = config["configurable"]["deps"]
    session = state["session"]
    text = state.get("text", "")
    origin = state["origin"]
    limit = deps.settings.MAX_RESULTS

    routable = [venue for venue in session.last_shown_venues if venue.coordinates is not None]
    if len(routable) >= MIN_ROUTE_STOPS:
        stops = select_route_stops(
            session.last_shown_venues,
            indices=extract_place_indices(text),
            count=extract_requested_count(text),
            limit=limit,
        )
        if len(stops) >= MIN_ROUTE_STOPS:
            logger.info("route built from shown venues: user_id=%s stops=%d", session.user_id, len(stops))
            return {**state, "response": build_route_response(origin, stops)}

    required_count = extract_requested_count(text) or deps.settings.DEFAULT_MULTI_PLACE_COUNT
    logger.info("route needs new venues, running multi-place search: required_count=%d", required_count)
    result = await run_venue_search(
        deps,
        session,
        text,
        origin,
        required_count=required_count,
        exclude_types=[LODGING_TYPE],
    )
    session, response = result.session, result.response

    stops = select_route_stops(session.last_shown_venues, count=required_count, limit=limit)
    if result.found and len(stops) >= MIN_ROUTE_STOPS:
        route_button = ActionButton(label=BUTTON_LABELS["open_route"], url=build_route_url(origin, stops))
        response = response.model_copy(update={"buttons": [*response.buttons, [route_button]]})

    return {**state, "session": session, "response": response}
