"""신규 검색 노드: 필터 추출 → 집계 검색 → 상세 보강 → 랭킹 → 세션 반영."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

from langchain_core.runnables import RunnableConfig

from app.core.exceptions import (
    InvalidPlaceIdError,
    QuotaExceededError,
    SearchUnavailableError,
    UpstreamUnavailableError,
)
from app.core.geo import with_distance
from app.core.intent_heuristics import classify_multi_place, extract_requested_count
from app.core.logger import get_logger
from app.core.need_mapping import map_need
from app.core.timeout_policy import build_timeout_policy
from app.graph.dialogue.state import DialogueDeps, DialogueState
from app.schemas.dialogue import ConversationSession, ResponseDescriptor
from app.schemas.enums import SearchStatus
from app.schemas.place import Location, SearchFilters, Venue
from app.schemas.search import SearchRequest
from app.services.ranking import rank_and_filter
from app.services.response_formatter import build_results_response, message, text_response

logger = get_logger(__name__)

LODGING_TYPE = "lodging"
ADMINISTRATIVE_TYPES = frozenset(
    {
        "political",
        "locality",
        "sublocality",
        "sublocality_level_1",
        "neighborhood",
        "administrative_area_level_1",
        "administrative_area_level_2",
        "administrative_area_level_3",
        "country",
        "postal_code",
        "route",
        "geocode",
        "colloquial_area",
    }
)


@dataclass(frozen=True, slots=True)
class VenueSearchResult:
    """검색 흐름 결과."""

    session: ConversationSession
    response: ResponseDescriptor
    status: SearchStatus

    @property
    def found(self) -> bool:
        return self.status == SearchStatus.FOUND


def is_administrative(venue: Venue) -> bool:
    """행정 구역/도로 등 방문 장소가 아닌 항목인지 판단합니다."""
    return bool(venue.types) and set(venue.types) <= ADMINISTRATIVE_TYPES


def _merge_details(base: Venue, details: Venue) -> Venue:
    """상세 조회 결과를 우선하되 비어 있는 값은 기존 후보에서 채웁니다."""
    return details.model_copy(
        update={
            "name": details.name or base.name,
            "address": details.address or base.address,
            "rating": details.rating if details.rating is not None else base.rating,
            "price_level": details.price_level if details.price_level is not None else base.price_level,
            "is_open_now": details.is_open_now if details.is_open_now is not None else base.is_open_now,
            "coordinates": details.coordinates or base.coordinates,
            "distance_meters": None,
            "source_uri": details.source_uri or base.source_uri,
            "types": details.types or base.types,
        }
    )


async def enrich_venue(deps: DialogueDeps, venue: Venue, origin: Location, user_id: int | None) -> Venue:
    """필요하면 ID를 재해석하고 상세 정보로 후보를 보강합니다."""
    place_id = venue.place_id if venue.has_verified_id else None
    if place_id is None:
        place_id = await deps.aggregator.resolve_provider_id(
            venue.name,
            address=venue.address,
            source_uri=venue.source_uri,
            origin=origin,
            user_id=user_id,
        )
        if place_id is None:
            return with_distance(venue, origin)
        venue = venue.model_copy(update={"place_id": place_id})

    try:
        details = await deps.aggregator.get_venue_details(place_id, user_id=user_id)
    except (UpstreamUnavailableError, InvalidPlaceIdError) as exc:
        logger.info("venue enrichment skipped: place_id=%s reason=%s", place_id, exc)
        return with_distance(venue, origin)

    return with_distance(_merge_details(venue, details), origin)


async def enrich_venues(
    deps: DialogueDeps,
    venues: Sequence[Venue],
    origin: Location,
    user_id: int | None,
) -> list[Venue]:
    """장소별 보강을 동시에 실행하고, 각 작업은 개별 타임아웃으로 제한합니다."""
    timeout = build_timeout_policy(deps.settings).enrichment_timeout_seconds

    async def bounded(venue: Venue) -> Venue:
        try:
            return await asyncio.wait_for(enrich_venue(deps, venue, origin, user_id), timeout=timeout)
        except TimeoutError:
            logger.warning("venue enrichment timed out: name=%s", venue.name)
            return with_distance(venue, origin)

    return list(await asyncio.gather(*(bounded(venue) for venue in venues)))


def select_displayable(venues: Sequence[Venue], exclude_types: Sequence[str]) -> list[Venue]:
    excluded = set(exclude_types)
    return [
        venue
        for venue in venues
        if venue.coordinates is not None and not is_administrative(venue) and not excluded.intersection(venue.types)
    ]


async def run_venue_search(
    deps: DialogueDeps,
    session: ConversationSession,
    query: str,
    origin: Location,
    *,
    filters: SearchFilters | None = None,
    required_count: int | None = None,
    exclude_types: Sequence[str] = (),
    intro: str | None = None,
) -> VenueSearchResult:
    """집계 검색부터 응답 생성까지 한 번의 검색 흐름을 수행합니다.

    이미 보여준 장소는 제외하며, 결과가 있으면 세션을 후속 질문 대기 상태로 바꾼다.
    """
    state_service = deps.state_service
    user_id = session.user_id
    filters = filters or SearchFilters()
    request = SearchRequest(
        query=query,
        origin=origin,
        user_id=user_id,
        preferences=state_service.preferences(user_id),
        filters=filters,
        exclude_ids=list(session.shown_venue_ids),
        seen_venues=list(session.last_shown_venues),
        required_count=required_count,
        exclude_types=list(exclude_types),
    )

    stale = False
    try:
        outcome = await deps.aggregator.search(request)
    except QuotaExceededError as exc:
        if not exc.cache_available or exc.cached is None:
            logger.info("search blocked by quota without cache: user_id=%s scope=%s", user_id, exc.scope)
            return VenueSearchResult(session, text_response("quota_exhausted"), SearchStatus.QUOTA_EXHAUSTED)
        logger.info("search blocked by quota, serving cache: user_id=%s scope=%s", user_id, exc.scope)
        outcome = exc.cached
        stale = True
    except SearchUnavailableError:
        logger.error("search unavailable: user_id=%s", user_id)
        return VenueSearchResult(session, text_response("error_generic"), SearchStatus.FAILED)

    if stale:
        candidates = [with_distance(venue, origin) for venue in outcome.venues]
    else:
        candidates = await enrich_venues(deps, outcome.venues, origin, user_id)

    ranked = rank_and_filter(select_displayable(candidates, exclude_types), filters, origin)
    deps.activity_log.record_search(user_id, query, origin, len(ranked))

    if not ranked:
        logger.info("search returned no displayable venues: user_id=%s query=%s", user_id, query)
        return VenueSearchResult(
            state_service.with_no_results(session, query),
            text_response("no_results"),
            SearchStatus.NO_RESULTS,
        )

    page_size = state_service.page_size
    page = ranked[:page_size]
    window = ranked[: deps.settings.RESULT_WINDOW_SIZE]
    updated = state_service.with_search_results(session, query, page, window)

    response = build_results_response(
        page,
        intro=message("quota_cached") if stale else intro,
        ai_text=None if stale else outcome.text,
        show_more=len(window) > len(page) or len(page) >= page_size,
    )
    return VenueSearchResult(updated, response, SearchStatus.FOUND)


async def search_venues(state: DialogueState, config: RunnableConfig) -> DialogueState:
    """신규 검색 발화를 처리합니다."""
    deps: DialogueDeps = config["configurable"]["deps"]
    text = state.get("text", "")
    session = state["session"]

    filters = await deps.filter_extractor.extract(text)
    need = map_need(text)
    requested_count = extract_requested_count(text)
    if requested_count is None and classify_multi_place(text):
        requested_count = deps.settings.DEFAULT_MULTI_PLACE_COUNT

    exclude_types: list[str] = list(need.exclude_types) if need else []
    if requested_count is not None and LODGING_TYPE not in exclude_types:
        exclude_types.append(LODGING_TYPE)

    logger.info(
        "fresh search: user_id=%s need=%s requested_count=%s filters_empty=%s",
        state.get("user_id"),
        need.intent if need else None,
        requested_count,
        filters.is_empty,
    )
    result = await run_venue_search(
        deps,
        session,
        text,
        state["origin"],
        filters=filters,
        required_count=requested_count,
        exclude_types=exclude_types,
    )
    return {**state, "session": result.session, "response": result.response}
