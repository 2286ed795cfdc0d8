"""발화 분류 노드."""

from __future__ import annotations

from app.core.intent_heuristics import classify_utterance
from app.core.logger import get_logger
from app.graph.dialogue.state import DialogueState
from app.schemas.enums import UtteranceKind

logger = get_logger(__name__)


def classify(state: DialogueState) -> DialogueState:
    """경로 요청 → 후속 질문 → 신규 검색 순서로 분류합니다.

    이전 결과가 없는 후속 질문은 신규 검색으로 처리한다.
    """
    kind = classify_utterance(state.get("text", ""))
    if kind == UtteranceKind.FOLLOW_UP and not state["session"].last_shown_venues:
        kind = UtteranceKind.FRESH_SEARCH

    logger.info("utterance classified: user_id=%s kind=%s", state.get("user_id"), kind)
    return {**state, "kind": kind}
