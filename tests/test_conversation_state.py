"""대화 상태 전이 테스트."""

from datetime import timedelta

from app.models.session import UserPreferencesRecord
from app.schemas.enums import DialogueMode
from app.services.conversation_state import ConversationStateService
from app.services.session_repository import SqlSessionRepository
from tests.mocks.fakes import MOSCOW, make_settings, make_venue


def _service(session_factory, clock, **overrides) -> ConversationStateService:
    settings = make_settings(LOCATION_TTL_MINUTES=20, MAX_RESULTS=2, **overrides)
    return ConversationStateService(SqlSessionRepository(session_factory), settings, clock=clock)


def _venues(count: int, prefix: str = "v"):
    return [make_venue(f"Место {index}", suffix=f"{prefix}{index}", lat=55.75 + index / 1000, lon=37.61) for index in range(count)]


def test_new_session_awaits_location(session_factory, clock) -> None:
    service = _service(session_factory, clock)

    session = service.load(7)

    assert session.user_id == 7
    assert session.dialogue_mode == DialogueMode.AWAITING_LOCATION
    assert service.current_location(session) is None


def test_location_expires_after_ttl(session_factory, clock) -> None:
    service = _service(session_factory, clock)
    session = service.with_location(service.load(1), MOSCOW)

    assert service.current_location(session) == MOSCOW
    assert service.effective_mode(session) == DialogueMode.FRESH

    clock.now = clock.now + timedelta(minutes=21)

    assert service.current_location(session) is None
    assert service.effective_mode(session) == DialogueMode.AWAITING_LOCATION


def test_save_and_load_round_trip(session_factory, clock) -> None:
    service = _service(session_factory, clock)
    session = service.with_location(service.load(1), MOSCOW)
    session = service.with_search_results(session, "кофе", _venues(2))

    service.save(session)
    loaded = service.load(1)

    assert loaded.dialogue_mode == DialogueMode.AWAITING_FOLLOW_UP
    assert loaded.last_query == "кофе"
    assert [venue.name for venue in loaded.last_shown_venues] == ["Место 0", "Место 1"]
    assert service.current_location(loaded) == MOSCOW
    assert loaded.updated_at is not None


def test_new_location_resets_shown_tracking(session_factory, clock) -> None:
    service = _service(session_factory, clock)
    session = service.with_search_results(service.with_location(service.load(1), MOSCOW), "кофе", _venues(2))

    relocated = service.with_location(session, MOSCOW)

    assert relocated.shown_venue_ids == []
    assert relocated.last_shown_venues == []
    assert relocated.result_window is None
    assert relocated.dialogue_mode == DialogueMode.FRESH


def test_shown_ids_are_append_only_and_unique(session_factory, clock) -> None:
    service = _service(session_factory, clock)
    first = _venues(2)
    session = service.with_search_results(service.load(1), "кофе", first)
    session = service.with_search_results(session, "чай", [first[1], *_venues(1, "w")])

    assert session.shown_venue_ids == [first[0].place_id, first[1].place_id, _venues(1, "w")[0].place_id]
    assert [venue.name for venue in session.last_shown_venues] == ["Место 1", "Место 0"]


def test_page_is_capped_and_window_paginates(session_factory, clock) -> None:
    service = _service(session_factory, clock)
    ranked = _venues(5)

    session = service.with_search_results(service.load(1), "кофе", ranked[:2], ranked)
    assert session.result_window.cursor == 2

    session, page = service.with_next_page(session)
    assert [venue.name for venue in page] == ["Место 2", "Место 3"]
    assert session.last_shown_venues == page

    session, page = service.with_next_page(session)
    assert [venue.name for venue in page] == ["Место 4"]

    session, page = service.with_next_page(session)
    assert page == []
    assert len(session.shown_venue_ids) == 5


def test_next_page_skips_already_shown(session_factory, clock) -> None:
    service = _service(session_factory, clock)
    ranked = _venues(4)
    session = service.with_search_results(service.load(1), "кофе", ranked[:2], ranked)
    session = session.model_copy(update={"shown_venue_ids": [*session.shown_venue_ids, ranked[2].place_id]})

    session, page = service.with_next_page(session)

    assert [venue.name for venue in page] == ["Место 3"]


def test_no_results_keeps_last_shown(session_factory, clock) -> None:
    service = _service(session_factory, clock)
    session = service.with_search_results(service.load(1), "кофе", _venues(1))

    session = service.with_no_results(session, "суши")

    assert session.dialogue_mode == DialogueMode.FRESH
    assert session.last_query == "суши"
    assert [venue.name for venue in session.last_shown_venues] == ["Место 0"]


def test_reset_deletes_session(session_factory, clock) -> None:
    service = _service(session_factory, clock)
    service.save(service.with_location(service.load(1), MOSCOW))

    service.reset(1)

    assert service.current_location(service.load(1)) is None


def test_preferences_are_loaded_when_present(session_factory, clock) -> None:
    service = _service(session_factory, clock)
    with session_factory() as db:
        db.add(UserPreferencesRecord(user_id=3, dietary=["vegan"], transport="walking"))
        db.add(UserPreferencesRecord(user_id=4, dietary=[]))
        db.commit()

    preferences = service.preferences(3)

    assert preferences is not None
    assert preferences.dietary == ["vegan"]
    assert service.preferences(4) is None
    assert service.preferences(5) is None
