"""대화 오케스트레이터 시나리오 테스트.

실제 SQLite 저장소 위에서 외부 API만 Mock으로 바꿔 한 사용자의 대화 흐름을 재현한다.
"""

import asyncio
from datetime import timedelta

from app.schemas.enums import DialogueMode
from app.schemas.place import GroundedAnswer, GroundingReference, Location
from app.services.activity_log import ActivityLog
from app.services.conversation_state import ConversationStateService
from app.services.dialogue_service import DialogueOrchestrator
from app.services.filter_extractor import FilterExtractor
from app.services.quota_guard import QuotaGuard
from app.services.response_formatter import ACTION_NEXT, ACTION_ROUTE, FACT_NOT_FOUND, message
from app.services.result_cache import ResultCache
from app.services.search_aggregator import SearchAggregator
from app.services.session_repository import SqlSessionRepository
from tests.mocks.fake_grounded import FakeGroundedSearch
from tests.mocks.fake_places import FakePlacesService, ok
from tests.mocks.fakes import MOSCOW, make_settings, make_venue, place_id

USER_ID = 42
QUERY = "Найди кофейню с Wi-Fi"


def _ref(name: str, suffix: str, lat: float, lon: float) -> GroundingReference:
    return GroundingReference(
        title=name,
        place_id=place_id(suffix),
        uri=f"https://www.google.com/maps/place/x/@{lat},{lon},17z",
    )


def _moscow_answer() -> GroundedAnswer:
    return GroundedAnswer(
        text="CITY: NONE\nВот варианты.",
        references=[
            _ref("Кофейня", "a", 55.7568, 37.6173),
            _ref("Бар", "b", 55.7578, 37.6173),
            _ref("Пекарня", "c", 55.7588, 37.6173),
        ],
    )


def _build(session_factory, clock, places=None, grounded=None, **overrides):
    settings = make_settings(**overrides)
    places = places or FakePlacesService()
    grounded = grounded or FakeGroundedSearch(_moscow_answer())
    aggregator = SearchAggregator(
        settings,
        places,
        grounded,
        QuotaGuard(session_factory, settings, clock=clock),
        ResultCache(session_factory, settings, clock=clock),
        clock=clock,
    )
    state_service = ConversationStateService(SqlSessionRepository(session_factory), settings, clock=clock)
    orchestrator = DialogueOrchestrator(
        settings=settings,
        state_service=state_service,
        aggregator=aggregator,
        filter_extractor=FilterExtractor(settings),
        activity_log=ActivityLog(session_factory),
    )
    return orchestrator, state_service


async def _share_location_and_search(orchestrator: DialogueOrchestrator):
    await orchestrator.handle_location(USER_ID, MOSCOW.lat, MOSCOW.lon)
    return await orchestrator.handle_message(USER_ID, QUERY)


class TestCommands:
    """명령과 위치 공유 테스트."""

    def test_start_requests_location_for_new_user(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock)

        response = asyncio.run(orchestrator.handle_message(USER_ID, "/start"))

        assert response.text == message("welcome")
        assert response.request_location is True

    def test_help_after_location_does_not_request_it_again(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock)

        async def scenario():
            received = await orchestrator.handle_location(USER_ID, MOSCOW.lat, MOSCOW.lon)
            return received, await orchestrator.handle_message(USER_ID, "/help")

        received, response = asyncio.run(scenario())

        assert received.text == message("location_received")
        assert response.text == message("help")
        assert response.request_location is False

    def test_reset_clears_session(self, session_factory, clock) -> None:
        orchestrator, state_service = _build(session_factory, clock)

        async def scenario():
            await _share_location_and_search(orchestrator)
            return await orchestrator.handle_message(USER_ID, "/reset")

        response = asyncio.run(scenario())

        assert response.text == message("session_reset")
        assert response.request_location is True
        session = state_service.load(USER_ID)
        assert session.last_shown_venues == []
        assert state_service.current_location(session) is None

    def test_reset_endpoint_method(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock)

        response = asyncio.run(orchestrator.reset(USER_ID))

        assert response.request_location is True

    def test_reset_waits_for_in_flight_turn(self, session_factory, clock) -> None:
        class SlowSearch(FakeGroundedSearch):
            def __init__(self, answer) -> None:
                super().__init__(answer)
                self.started = asyncio.Event()
                self.release = asyncio.Event()

            async def generate(self, prompt, location_bias):
                self.started.set()
                await self.release.wait()
                return await super().generate(prompt, location_bias)

        grounded = SlowSearch(_moscow_answer())
        orchestrator, state_service = _build(session_factory, clock, grounded=grounded)

        async def scenario():
            await orchestrator.handle_location(USER_ID, MOSCOW.lat, MOSCOW.lon)
            turn = asyncio.create_task(orchestrator.handle_message(USER_ID, QUERY))
            await grounded.started.wait()
            reset = asyncio.create_task(orchestrator.reset(USER_ID))
            await asyncio.sleep(0)
            grounded.release.set()
            return await turn, await reset

        searched, reset = asyncio.run(scenario())

        assert "Кофейня" in searched.text
        assert reset.text == message("session_reset")
        session = state_service.load(USER_ID)
        assert session.last_shown_venues == []
        assert state_service.current_location(session) is None


class TestSearchTurns:
    """신규 검색 턴 테스트."""

    def test_search_without_location_requests_it(self, session_factory, clock) -> None:
        grounded = FakeGroundedSearch(_moscow_answer())
        orchestrator, state_service = _build(session_factory, clock, grounded=grounded)

        response = asyncio.run(orchestrator.handle_message(USER_ID, QUERY))

        assert response.text == message("location_request")
        assert response.request_location is True
        assert grounded.prompts == []
        assert state_service.load(USER_ID).dialogue_mode == DialogueMode.AWAITING_LOCATION

    def test_search_shows_ranked_results(self, session_factory, clock) -> None:
        orchestrator, state_service = _build(session_factory, clock, MAX_RESULTS=2)

        response = asyncio.run(_share_location_and_search(orchestrator))

        assert response.text.startswith(message("search_intro"))
        assert "**1. Кофейня**" in response.text
        assert "**2. Бар**" in response.text
        assert response.text.endswith("Вот варианты.")
        assert [button.action for button in response.buttons[-1]] == [ACTION_NEXT, ACTION_ROUTE]

        session = state_service.load(USER_ID)
        assert [venue.name for venue in session.last_shown_venues] == ["Кофейня", "Бар"]
        assert session.shown_venue_ids == [place_id("a"), place_id("b")]
        assert session.last_query == QUERY

    def test_city_mention_replaces_missing_location(self, session_factory, clock) -> None:
        kaliningrad = make_venue("Калининград", lat=54.7104, lon=20.4522, types=["locality"])
        places = FakePlacesService(geocode=lambda address: ok(kaliningrad))
        grounded = FakeGroundedSearch(
            GroundedAnswer(text="CITY: Калининград\nМузей.", references=[_ref("Музей янтаря", "m", 54.7212, 20.5170)])
        )
        orchestrator, _ = _build(session_factory, clock, places=places, grounded=grounded)

        response = asyncio.run(orchestrator.handle_message(USER_ID, "Найди музей в Калининграде"))

        assert "Музей янтаря" in response.text
        assert places.count("geocode") == 1
        assert places.calls[0] == ("geocode", ("Калининград",))

    def test_quota_exhausted_without_cache(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock, GEMINI_DAILY_USER_LIMIT=1)

        async def scenario():
            await _share_location_and_search(orchestrator)
            return await orchestrator.handle_message(USER_ID, "Найди аптеку")

        response = asyncio.run(scenario())

        assert response.text == message("quota_exhausted")

    def test_unexpected_grounding_error_falls_back_to_structured_search(self, session_factory, clock) -> None:
        class ExplodingSearch(FakeGroundedSearch):
            async def generate(self, prompt, location_bias):
                raise RuntimeError("boom")

        nearby = [make_venue("Кофейня у дома", suffix="home", lat=55.7565, lon=37.6173)]
        places = FakePlacesService(nearby=lambda location, radius, keyword: ok(*nearby))
        orchestrator, _ = _build(session_factory, clock, places=places, grounded=ExplodingSearch())

        response = asyncio.run(_share_location_and_search(orchestrator))

        assert "**1. Кофейня у дома**" in response.text
        assert places.count("nearby") == 1

    def test_unexpected_structured_failure_returns_generic_error(self, session_factory, clock) -> None:
        def explode(location, radius, keyword):
            raise RuntimeError("boom")

        places = FakePlacesService(nearby=explode)
        orchestrator, _ = _build(session_factory, clock, places=places, grounded=FakeGroundedSearch(fail=True))

        response = asyncio.run(_share_location_and_search(orchestrator))

        assert response.text == message("error_generic")

    def test_stale_location_requests_it_again(self, session_factory, clock) -> None:
        grounded = FakeGroundedSearch(_moscow_answer())
        places = FakePlacesService()
        orchestrator, state_service = _build(session_factory, clock, places=places, grounded=grounded)

        async def scenario():
            await orchestrator.handle_location(USER_ID, MOSCOW.lat, MOSCOW.lon)
            clock.now = clock.now + timedelta(minutes=25)
            return await orchestrator.handle_message(USER_ID, QUERY)

        response = asyncio.run(scenario())

        assert response.text == message("location_request")
        assert response.request_location is True
        assert grounded.prompts == []
        assert places.calls == []
        assert state_service.load(USER_ID).dialogue_mode == DialogueMode.AWAITING_LOCATION

    def test_empty_grounding_uses_structured_results(self, session_factory, clock) -> None:
        grounded = FakeGroundedSearch(GroundedAnswer(text="CITY: NONE\nНичего не нашлось."))
        nearby = [
            make_venue("Аптека 2", suffix="p2", lat=55.7578, lon=37.6173),
            make_venue("Аптека 1", suffix="p1", lat=55.7568, lon=37.6173),
        ]
        places = FakePlacesService(nearby=lambda location, radius, keyword: ok(*nearby))
        orchestrator, state_service = _build(session_factory, clock, places=places, grounded=grounded)

        response = asyncio.run(_share_location_and_search(orchestrator))

        assert len(grounded.prompts) == 1
        assert places.count("nearby") == 1
        assert "**1. Аптека 1**" in response.text
        assert "**2. Аптека 2**" in response.text
        assert [venue.name for venue in state_service.load(USER_ID).last_shown_venues] == ["Аптека 1", "Аптека 2"]

    def test_ai_failure_with_empty_fallback_returns_no_results(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock, grounded=FakeGroundedSearch(fail=True))

        response = asyncio.run(_share_location_and_search(orchestrator))

        assert response.text == message("no_results")


class TestFollowUps:
    """후속 질문 테스트."""

    def test_detail_question_uses_stored_venue(self, session_factory, clock) -> None:
        grounded = FakeGroundedSearch(_moscow_answer())
        places = FakePlacesService()
        orchestrator, state_service = _build(session_factory, clock, places=places, grounded=grounded, MAX_RESULTS=2)

        async def scenario():
            await _share_location_and_search(orchestrator)
            return await orchestrator.handle_message(USER_ID, "А у второго есть парковка?")

        response = asyncio.run(scenario())

        assert response.text == f"**Бар**\n\n{FACT_NOT_FOUND['parking']}"
        assert response.buttons[0][-1].action == f"reviews:{place_id('b')}"
        assert [venue.name for venue in state_service.load(USER_ID).last_shown_venues] == ["Кофейня", "Бар"]
        assert len(grounded.prompts) == 1
        assert places.count("nearby") == 0
        assert places.count("text_search") == 0

    def test_comparison(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock, MAX_RESULTS=2)

        async def scenario():
            await _share_location_and_search(orchestrator)
            return await orchestrator.handle_message(USER_ID, "Сравни первый и второй")

        response = asyncio.run(scenario())

        assert response.text.startswith("⚖️ Сравнение: 1. Кофейня vs 2. Бар")

    def test_route_request_from_text(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock, MAX_RESULTS=2)

        async def scenario():
            await _share_location_and_search(orchestrator)
            return await orchestrator.handle_message(USER_ID, "Построй маршрут через эти места")

        response = asyncio.run(scenario())

        assert response.text.startswith(message("route_ready", count=2))
        assert "travelmode=walking" in response.buttons[0][0].url


class TestActions:
    """버튼 콜백 테스트."""

    def test_next_pages_then_searches_again_then_stops(self, session_factory, clock) -> None:
        orchestrator, state_service = _build(session_factory, clock, MAX_RESULTS=2)

        async def scenario():
            await _share_location_and_search(orchestrator)
            second = await orchestrator.handle_action(USER_ID, ACTION_NEXT)
            third = await orchestrator.handle_action(USER_ID, ACTION_NEXT)
            return second, third

        second, third = asyncio.run(scenario())

        assert second.text.startswith(message("next_intro"))
        assert "Пекарня" in second.text
        assert "Кофейня" not in second.text
        assert third.text == message("no_more_results")
        assert set(state_service.load(USER_ID).shown_venue_ids) == {place_id("a"), place_id("b"), place_id("c")}

    def test_next_reports_quota_instead_of_end_of_results(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock, MAX_RESULTS=2, GEMINI_DAILY_USER_LIMIT=1)

        async def scenario():
            await _share_location_and_search(orchestrator)
            await orchestrator.handle_action(USER_ID, ACTION_NEXT)
            return await orchestrator.handle_action(USER_ID, ACTION_NEXT)

        response = asyncio.run(scenario())

        assert response.text == message("quota_exhausted")

    def test_next_without_previous_search(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock)

        response = asyncio.run(orchestrator.handle_action(USER_ID, ACTION_NEXT))

        assert response.text == message("no_more_results")

    def test_route_action(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock, MAX_RESULTS=2)

        async def scenario():
            await _share_location_and_search(orchestrator)
            return await orchestrator.handle_action(USER_ID, ACTION_ROUTE)

        response = asyncio.run(scenario())

        assert response.text.splitlines()[1:] == ["1. Кофейня", "2. Бар"]
        assert "origin=55.7558,37.6173" in response.buttons[0][0].url

    def test_route_action_without_results(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock)

        response = asyncio.run(orchestrator.handle_action(USER_ID, ACTION_ROUTE))

        assert response.text == message("route_not_enough")

    def test_reviews_with_invalid_id(self, session_factory, clock) -> None:
        places = FakePlacesService()
        orchestrator, _ = _build(session_factory, clock, places=places)

        response = asyncio.run(orchestrator.handle_action(USER_ID, "reviews:bad"))

        assert response.text == message("invalid_place_id")
        assert places.calls == []

    def test_reviews_when_details_fail(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock)

        response = asyncio.run(orchestrator.handle_action(USER_ID, f"reviews:{place_id('a')}"))

        assert response.text == message("details_unavailable")

    def test_unknown_action_returns_help(self, session_factory, clock) -> None:
        orchestrator, _ = _build(session_factory, clock)

        response = asyncio.run(orchestrator.handle_action(USER_ID, "dance"))

        assert response.text == message("help")


def test_location_value_object_is_stored(session_factory, clock) -> None:
    orchestrator, state_service = _build(session_factory, clock)

    asyncio.run(orchestrator.handle_location(USER_ID, 59.93, 30.31))

    assert state_service.current_location(state_service.load(USER_ID)) == Location(lat=59.93, lon=30.31)
