"""이전 결과를 가리키는 후속 질문 처리 노드."""

from __future__ import annotations

from langchain_core.runnables import RunnableConfig

from app.core.exceptions import (
    InvalidPlaceIdError,
    QuotaExceededError,
    SearchUnavailableError,
    UpstreamUnavailableError,
)
from app.core.geo import with_distance
from app.core.intent_heuristics import (
    classify_follow_up_detail,
    extract_all_ordinals,
    extract_fact_topic,
    extract_ordinal,
)
from app.core.logger import get_logger
from app.graph.dialogue.state import DialogueDeps, DialogueState
from app.schemas.dialogue import ConversationSession, ResponseDescriptor
from app.schemas.enums import FollowUpKind
from app.schemas.place import Location, Venue
from app.schemas.search import SearchContext, SearchRequest
from app.services.response_formatter import (
    format_comparison,
    format_fact_answer,
    text_response,
    venue_buttons,
)

logger = get_logger(__name__)

DEFAULT_COMPARISON_INDICES = (1, 2)


def _compare(session: ConversationSession, text: str) -> ResponseDescriptor:
    venues = session.last_shown_venues
    requested = extract_all_ordinals(text) or list(DEFAULT_COMPARISON_INDICES)
    indices = [index for index in requested if 1 <= index <= len(venues)]
    if len(indices) < 2:
        return text_response("invalid_index", count=len(venues))

    chosen = [(index, venues[index - 1]) for index in indices]
    return ResponseDescriptor(
        text=format_comparison(chosen),
        buttons=[row for index, venue in chosen for row in venue_buttons([venue], start=index)],
    )


async def _answer_detail(
    deps: DialogueDeps,
    session: ConversationSession,
    text: str,
    origin: Location,
) -> ResponseDescriptor:
    venues = session.last_shown_venues
    index = extract_ordinal(text) or len(venues)
    if not 1 <= index <= len(venues):
        return text_response("invalid_index", count=len(venues))

    venue: Venue = venues[index - 1]
    if venue.has_verified_id:
        try:
            details = await deps.aggregator.get_venue_details(venue.place_id, user_id=session.user_id)
            venue = with_distance(
                details.model_copy(
                    update={
                        "distance_meters": venue.distance_meters,
                        "coordinates": details.coordinates or venue.coordinates,
                    }
                ),
                origin,
            )
        except (UpstreamUnavailableError, InvalidPlaceIdError) as exc:
            logger.info("detail lookup failed, answering from stored venue: place_id=%s reason=%s", venue.place_id, exc)

    topic = extract_fact_topic(text)
    logger.info("detail follow-up: user_id=%s index=%d topic=%s", session.user_id, index, topic)
    return ResponseDescriptor(text=format_fact_answer(venue, topic), buttons=venue_buttons([venue], start=index))


async def _answer_general(
    deps: DialogueDeps,
    session: ConversationSession,
    text: str,
    origin: Location,
) -> ResponseDescriptor:
    """대화 맥락을 붙여 AI 검색으로 답합니다. 이미 본 장소도 제외하지 않습니다."""
    request = SearchRequest(
        query=text,
        origin=origin,
        user_id=session.user_id,
        context=SearchContext(last_query=session.last_query, venues=list(session.last_shown_venues)),
        preferences=deps.state_service.preferences(session.user_id),
    )
    try:
        outcome = await deps.aggregator.search(request)
    except QuotaExceededError as exc:
        if exc.cache_available and exc.cached is not None and exc.cached.text:
            return ResponseDescriptor(text=exc.cached.text)
        return text_response("quota_exhausted")
    except SearchUnavailableError:
        return text_response("error_generic")

    if outcome.text.strip():
        return ResponseDescriptor(text=outcome.text.strip(), buttons=venue_buttons(outcome.venues))
    if not outcome.venues:
        return text_response("no_results")
    return ResponseDescriptor(
        text="\n".join(f"{index}. {venue.name}" for index, venue in enumerate(outcome.venues, start=1)),
        buttons=venue_buttons(outcome.venues),
    )


async def answer_follow_up(state: DialogueState, config: RunnableConfig) -> DialogueState:
    """비교/상세/일반 후속 질문에 답합니다. 세션의 표시 목록은 바꾸지 않습니다."""
    deps: DialogueDeps = config["configurable"]["deps"]
    session = state["session"]
    text = state.get("text", "")

    kind = classify_follow_up_detail(text)
    if kind == FollowUpKind.COMPARISON:
        response = _compare(session, text)
    elif kind == FollowUpKind.DETAIL:
        response = await _answer_detail(deps, session, text, state["origin"])
    else:
        response = await _answer_general(deps, session, text, state["origin"])

    logger.info("follow-up answered: user_id=%s kind=%s", session.user_id, kind)
    return {**state, "response": response}
