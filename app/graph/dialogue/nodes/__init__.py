"""대화 턴 그래프 노드 모음."""

from app.graph.dialogue.nodes.classify import classify
from app.graph.dialogue.nodes.follow_up import answer_follow_up
from app.graph.dialogue.nodes.resolve_location import resolve_location
from app.graph.dialogue.nodes.route import build_route
from app.graph.dialogue.nodes.search import search_venues

__all__ = ["resolve_location", "classify", "build_route", "answer_follow_up", "search_venues"]
