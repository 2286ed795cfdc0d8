"""대화 턴 그래프 상태 정의."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict

from app.core.config import Settings
from app.schemas.dialogue import ConversationSession, ResponseDescriptor
from app.schemas.enums import UtteranceKind
from app.schemas.place import Location
from app.services.activity_log import ActivityLog
from app.services.conversation_state import ConversationStateService
from app.services.filter_extractor import FilterExtractor
from app.services.search_aggregator import SearchAggregator


@dataclass(frozen=True, slots=True)
class DialogueDeps:
    """그래프 노드가 `config["configurable"]["deps"]`로 받는 협력 객체 묶음."""

    settings: Settings
    state_service: ConversationStateService
    aggregator: SearchAggregator
    filter_extractor: FilterExtractor
    activity_log: ActivityLog


class DialogueState(TypedDict, total=False):
    """대화 턴 그래프 상태.

    Keys:
        user_id: 사용자 ID
        text: 사용자 발화
        session: 현재 세션 (노드를 거치며 새 모델로 교체됨)
        origin: 이번 턴의 검색 기준 위치
        city: 발화에서 추출한 도시명
        kind: 발화 분류 결과
        response: 사용자에게 보낼 단일 응답
    """

    # Input
    user_id: int
    text: str
    session: ConversationSession

    # Processing
    origin: Location | None
    city: str | None
    kind: UtteranceKind

    # Output
    response: ResponseDescriptor | None
