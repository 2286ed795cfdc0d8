"""대화 턴 오케스트레이터.

사용자별로 턴을 직렬화하고, 세션을 읽어 그래프를 실행한 뒤 결과 세션을 저장한다.
모든 턴은 정확히 하나의 응답을 반환한다.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict

from app.core.config import Settings
from app.core.exceptions import InvalidPlaceIdError, UpstreamUnavailableError
from app.core.logger import get_logger
from app.core.place_ids import is_valid_place_id
from app.graph.dialogue.nodes.route import MIN_ROUTE_STOPS, select_route_stops
from app.graph.dialogue.nodes.search import run_venue_search
from app.graph.dialogue.state import DialogueDeps
from app.graph.dialogue.workflow import compiled_dialogue_graph
from app.schemas.dialogue import ResponseDescriptor
from app.schemas.enums import SearchStatus
from app.schemas.place import Location
from app.services.activity_log import ActivityLog
from app.services.conversation_state import ConversationStateService
from app.services.filter_extractor import FilterExtractor
from app.services.response_formatter import (
    ACTION_NEXT,
    ACTION_REVIEWS_PREFIX,
    ACTION_ROUTE,
    build_location_request,
    build_results_response,
    build_route_response,
    format_reviews,
    message,
    text_response,
)
from app.services.search_aggregator import SearchAggregator

logger = get_logger(__name__)

_COMMANDS = {
    "/start": "welcome",
    "/help": "help",
}
_RESET_COMMAND = "/reset"


class DialogueOrchestrator:
    """발화/위치/버튼 입력을 처리하는 진입점."""

    def __init__(
        self,
        settings: Settings,
        state_service: ConversationStateService,
        aggregator: SearchAggregator,
        filter_extractor: FilterExtractor,
        activity_log: ActivityLog,
    ) -> None:
        self._settings = settings
        self._state = state_service
        self._aggregator = aggregator
        self._deps = DialogueDeps(
            settings=settings,
            state_service=state_service,
            aggregator=aggregator,
            filter_extractor=filter_extractor,
            activity_log=activity_log,
        )
        self._activity = activity_log
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def handle_message(self, user_id: int, text: str) -> ResponseDescriptor:
        """텍스트 발화 한 턴을 처리합니다."""
        async with self._locks[user_id]:
            try:
                return await self._handle_message(user_id, text.strip())
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("dialogue turn failed: user_id=%s", user_id)
                return text_response("error_generic")

    async def _handle_message(self, user_id: int, text: str) -> ResponseDescriptor:
        command = text.split(maxsplit=1)[0].lower() if text.startswith("/") else None
        if command == _RESET_COMMAND:
            self._state.reset(user_id)
            return ResponseDescriptor(text=message("session_reset"), request_location=True)
        if command in _COMMANDS:
            session = self._state.load(user_id)
            return ResponseDescriptor(
                text=message(_COMMANDS[command]),
                request_location=self._state.current_location(session) is None,
            )

        session = self._state.load(user_id)
        initial_state = {"user_id": user_id, "text": text, "session": session, "response": None}
        result = await compiled_dialogue_graph.ainvoke(initial_state, config={"configurable": {"deps": self._deps}})

        self._state.save(result["session"])
        response = result.get("response")
        if response is None:
            logger.error("dialogue graph produced no response: user_id=%s", user_id)
            return text_response("error_generic")
        return response

    async def handle_location(self, user_id: int, latitude: float, longitude: float) -> ResponseDescriptor:
        """위치 공유를 세션에 저장하고 확인 메시지를 반환합니다."""
        async with self._locks[user_id]:
            try:
                session = self._state.load(user_id)
                session = self._state.with_location(session, Location(lat=latitude, lon=longitude))
                self._state.save(session)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("location update failed: user_id=%s", user_id)
                return text_response("error_generic")
            logger.info("location received: user_id=%s", user_id)
            return text_response("location_received")

    async def handle_action(self, user_id: int, action: str) -> ResponseDescriptor:
        """버튼 콜백(next / route / reviews:<id>)을 처리합니다."""
        async with self._locks[user_id]:
            try:
                return await self._handle_action(user_id, action.strip())
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("action failed: user_id=%s action=%s", user_id, action)
                return text_response("error_generic")

    async def _handle_action(self, user_id: int, action: str) -> ResponseDescriptor:
        if action.startswith(ACTION_REVIEWS_PREFIX):
            place_id = action[len(ACTION_REVIEWS_PREFIX) :]
            self._activity.track_action(user_id, "reviews", place_id=place_id or None)
            return await self._show_reviews(user_id, place_id)

        self._activity.track_action(user_id, action)
        if action == ACTION_NEXT:
            return await self._show_next(user_id)
        if action == ACTION_ROUTE:
            return self._route_from_session(user_id)

        logger.warning("unknown action: user_id=%s action=%s", user_id, action)
        return text_response("help")

    async def _show_reviews(self, user_id: int, place_id: str) -> ResponseDescriptor:
        if not is_valid_place_id(place_id):
            return text_response("invalid_place_id")
        try:
            venue = await self._aggregator.get_venue_details(place_id, include_reviews=True, user_id=user_id)
        except (UpstreamUnavailableError, InvalidPlaceIdError) as exc:
            logger.warning("reviews unavailable: place_id=%s reason=%s", place_id, exc)
            return text_response("details_unavailable")
        return ResponseDescriptor(text=format_reviews(venue))

    async def _show_next(self, user_id: int) -> ResponseDescriptor:
        """결과 창의 다음 페이지를 보여주고, 소진되면 이미 본 장소를 제외하고 다시 검색합니다."""
        session = self._state.load(user_id)
        session, page = self._state.with_next_page(session)
        if page:
            self._state.save(session)
            window = session.result_window
            return build_results_response(
                page,
                intro=message("next_intro"),
                show_more=window is not None and window.has_more,
            )

        origin = self._state.current_location(session)
        if not session.last_query:
            return text_response("no_more_results")
        if origin is None:
            self._state.save(self._state.with_awaiting_location(session))
            return build_location_request()

        result = await run_venue_search(
            self._deps,
            session,
            session.last_query,
            origin,
            intro=message("next_intro"),
        )
        self._state.save(result.session)
        if result.status == SearchStatus.NO_RESULTS:
            return text_response("no_more_results")
        return result.response

    def _route_from_session(self, user_id: int) -> ResponseDescriptor:
        session = self._state.load(user_id)
        stops = select_route_stops(session.last_shown_venues, limit=self._settings.MAX_RESULTS)
        if len(stops) < MIN_ROUTE_STOPS:
            return text_response("route_not_enough")
        return build_route_response(self._state.current_location(session), stops)

    async def reset(self, user_id: int) -> ResponseDescriptor:
        """진행 중인 턴이 끝난 뒤 세션을 삭제합니다."""
        async with self._locks[user_id]:
            self._state.reset(user_id)
        logger.info("session reset: user_id=%s", user_id)
        return ResponseDescriptor(text=message("session_reset"), request_location=True)
