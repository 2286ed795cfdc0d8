"""사용자에게 보이는 결과를 바꾸는 도메인 예외 정의.

사용자 응답에 영향을 주지 않는 인프라 오류(캐시 쓰기, 쿼터 기록 등)는
발생 지점에서 흡수되므로 여기에 포함되지 않는다.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from app.schemas.enums import QuotaScope

if TYPE_CHECKING:
    from app.schemas.search import SearchOutcome


class SpotFinderError(RuntimeError):
    """도메인 예외 기본 클래스."""


class QuotaExceededError(SpotFinderError):
    """일일 호출 한도 초과.

    ``cache_available``이 참이면 ``cached``에 만료 전 캐시 응답이 담긴다.
    """

    def __init__(
        self,
        scope: QuotaScope,
        *,
        cache_available: bool,
        cached: SearchOutcome | None = None,
    ) -> None:
        super().__init__(f"quota exceeded: scope={scope} cache_available={cache_available}")
        self.scope = scope
        self.cache_available = cache_available
        self.cached = cached


class UpstreamUnavailableError(SpotFinderError):
    """외부 검색/AI 호출 실패 또는 시간 초과."""

    def __init__(self, source: str, detail: str = "") -> None:
        super().__init__(f"{source} unavailable: {detail}" if detail else f"{source} unavailable")
        self.source = source
        self.detail = detail


class SearchUnavailableError(SpotFinderError):
    """AI 검색과 대체 검색이 모두 실패한 경우."""


class InvalidPlaceIdError(SpotFinderError):
    """형식 검증을 통과하지 못한 장소 ID."""

    def __init__(self, place_id: str | None) -> None:
        super().__init__(f"invalid place id: {place_id!r}")
        self.place_id = place_id
