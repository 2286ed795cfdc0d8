"""대화 턴 그래프 워크플로우 구성."""

from langgraph.graph import END, StateGraph

from app.graph.dialogue.nodes import answer_follow_up, build_route, classify, resolve_location, search_venues
from app.graph.dialogue.state import DialogueState
from app.schemas.enums import UtteranceKind

_KIND_TO_NODE = {
    UtteranceKind.ROUTE_REQUEST: "build_route",
    UtteranceKind.FOLLOW_UP: "answer_follow_up",
    UtteranceKind.FRESH_SEARCH: "search_venues",
}


def _route_after_location(state: DialogueState) -> str:
    """위치 요청 응답이 이미 만들어졌으면 턴을 끝냅니다."""
    if state.get("response") is not None:
        return END
    return "classify"


def _route_by_kind(state: DialogueState) -> str:
    return _KIND_TO_NODE[state.get("kind", UtteranceKind.FRESH_SEARCH)]


def _create_dialogue_workflow() -> StateGraph:
    """대화 턴 그래프 워크플로우를 생성합니다."""
    workflow = StateGraph(DialogueState)

    workflow.add_node("resolve_location", resolve_location)
    workflow.add_node("classify", classify)
    workflow.add_node("build_route", build_route)
    workflow.add_node("answer_follow_up", answer_follow_up)
    workflow.add_node("search_venues", search_venues)

    workflow.set_entry_point("resolve_location")
    workflow.add_conditional_edges("resolve_location", _route_after_location, ["classify", END])
    workflow.add_conditional_edges("classify", _route_by_kind, list(_KIND_TO_NODE.values()))
    workflow.add_edge("build_route", END)
    workflow.add_edge("answer_follow_up", END)
    workflow.add_edge("search_venues", END)

    return workflow


compiled_dialogue_graph = _create_dialogue_workflow().compile()
