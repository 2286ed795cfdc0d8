"""이번 턴의 검색 기준 위치 결정 노드."""

from __future__ import annotations

from langchain_core.runnables import RunnableConfig

from app.core.intent_heuristics import extract_city
from app.core.logger import get_logger
from app.graph.dialogue.state import DialogueDeps, DialogueState
from app.services.response_formatter import build_location_request

logger = get_logger(__name__)


async def resolve_location(state: DialogueState, config: RunnableConfig) -> DialogueState:
    """발화 속 도시명을 우선 지오코딩하고, 없으면 세션의 유효 위치를 사용합니다.

    둘 다 없으면 위치 공유 요청으로 턴을 끝낸다.
    """
    deps: DialogueDeps = config["configurable"]["deps"]
    session = state["session"]
    text = state.get("text", "")

    origin = None
    city = extract_city(text)
    if city:
        origin = await deps.aggregator.geocode_city(city, user_id=state.get("user_id"))
        logger.info("city mention resolved: city=%s found=%s", city, origin is not None)

    if origin is None:
        origin = deps.state_service.current_location(session)

    if origin is None:
        logger.info("location unavailable, requesting share: user_id=%s", state.get("user_id"))
        return {
            **state,
            "city": city,
            "origin": None,
            "session": deps.state_service.with_awaiting_location(session),
            "response": build_location_request(),
        }

    return {**state, "city": city, "origin": origin}
