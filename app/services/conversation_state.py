"""사용자별 대화 상태 전이.

상태: awaiting_location(신규) -> fresh(유효 위치 보유) -> awaiting_follow_up(결과 표시 직후).
위치 유효성은 매 호출마다 TTL로 다시 계산한다.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta

from app.core.config import Settings
from app.schemas.dialogue import ConversationSession, LocationSnapshot, ResultWindow
from app.schemas.enums import DialogueMode
from app.schemas.place import Location, UserPreferences, Venue
from app.services.session_repository import SessionRepository


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _append_unique(existing: Sequence[str], venues: Sequence[Venue]) -> list[str]:
    merged = list(existing)
    seen = set(merged)
    for venue in venues:
        if venue.place_id and venue.place_id not in seen:
            merged.append(venue.place_id)
            seen.add(venue.place_id)
    return merged


class ConversationStateService:
    """세션 로드/저장과 순수 상태 전이 함수를 제공합니다.

    ``with_*`` 메서드는 입력을 변경하지 않고 새 세션 모델을 반환한다.
    """

    def __init__(
        self,
        repository: SessionRepository,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._location_ttl = timedelta(minutes=settings.LOCATION_TTL_MINUTES)
        self._page_size = settings.MAX_RESULTS
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def page_size(self) -> int:
        return self._page_size

    def now(self) -> datetime:
        return _as_utc(self._clock())

    def load(self, user_id: int) -> ConversationSession:
        """저장된 세션을 읽고, 없으면 위치 대기 상태의 새 세션을 만듭니다."""
        session = self._repository.get(user_id)
        if session is not None:
            return session
        now = self.now()
        return ConversationSession(user_id=user_id, created_at=now, updated_at=now)

    def save(self, session: ConversationSession) -> ConversationSession:
        stored = session.model_copy(update={"updated_at": self.now()})
        self._repository.replace(stored)
        return stored

    def reset(self, user_id: int) -> None:
        self._repository.delete(user_id)

    def preferences(self, user_id: int) -> UserPreferences | None:
        return self._repository.get_preferences(user_id)

    def current_location(self, session: ConversationSession) -> Location | None:
        """TTL 이내에 공유된 위치만 반환합니다."""
        snapshot = session.location_snapshot
        if snapshot is None:
            return None
        if self.now() - _as_utc(snapshot.captured_at) > self._location_ttl:
            return None
        return snapshot.location

    def effective_mode(self, session: ConversationSession) -> DialogueMode:
        """위치 만료를 반영한 현재 대화 상태."""
        if self.current_location(session) is None:
            return DialogueMode.AWAITING_LOCATION
        if session.dialogue_mode == DialogueMode.AWAITING_LOCATION:
            return DialogueMode.FRESH
        return session.dialogue_mode

    def with_location(self, session: ConversationSession, location: Location) -> ConversationSession:
        """새 위치 공유: 이미 본 장소 추적과 페이지네이션을 초기화합니다."""
        return session.model_copy(
            update={
                "location_snapshot": LocationSnapshot(location=location, captured_at=self.now()),
                "dialogue_mode": DialogueMode.FRESH,
                "shown_venue_ids": [],
                "result_window": None,
                "last_shown_venues": [],
            }
        )

    def with_awaiting_location(self, session: ConversationSession) -> ConversationSession:
        return session.model_copy(update={"dialogue_mode": DialogueMode.AWAITING_LOCATION})

    def with_search_results(
        self,
        session: ConversationSession,
        query: str,
        page: Sequence[Venue],
        window: Sequence[Venue] = (),
    ) -> ConversationSession:
        """검색 성공: 마지막 표시 장소를 교체하고 표시 ID를 누적합니다."""
        page = list(page)[: self._page_size]
        window_venues = list(window) or page
        return session.model_copy(
            update={
                "dialogue_mode": DialogueMode.AWAITING_FOLLOW_UP,
                "last_query": query,
                "last_shown_venues": page,
                "shown_venue_ids": _append_unique(session.shown_venue_ids, page),
                "result_window": ResultWindow(query=query, venues=window_venues, cursor=len(page)),
            }
        )

    def with_next_page(self, session: ConversationSession) -> tuple[ConversationSession, list[Venue]]:
        """결과 창에서 아직 보여주지 않은 다음 페이지를 꺼냅니다.

        Returns:
            (갱신된 세션, 다음 페이지). 남은 결과가 없으면 페이지는 빈 리스트.
        """
        window = session.result_window
        if window is None or not window.has_more:
            return session, []

        shown = set(session.shown_venue_ids)
        page: list[Venue] = []
        cursor = window.cursor
        while cursor < len(window.venues) and len(page) < self._page_size:
            venue = window.venues[cursor]
            cursor += 1
            if venue.place_id and venue.place_id in shown:
                continue
            page.append(venue)

        updated_window = window.model_copy(update={"cursor": cursor})
        if not page:
            return session.model_copy(update={"result_window": updated_window}), []

        return (
            session.model_copy(
                update={
                    "dialogue_mode": DialogueMode.AWAITING_FOLLOW_UP,
                    "last_shown_venues": page,
                    "shown_venue_ids": _append_unique(session.shown_venue_ids, page),
                    "result_window": updated_window,
                }
            ),
            page,
        )

    def with_no_results(self, session: ConversationSession, query: str) -> ConversationSession:
        return session.model_copy(update={"dialogue_mode": DialogueMode.FRESH, "last_query": query})
