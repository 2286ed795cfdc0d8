"""사용자 필터 적용 및 가중 점수 기반 장소 정렬."""

from __future__ import annotations

import math
from collections.abc import Iterable

from app.core.geo import with_distance
from app.schemas.enums import SortBy
from app.schemas.place import Location, SearchFilters, Venue

RATING_WEIGHT = 10
PRICE_WEIGHT = 5
DISTANCE_DIVISOR = 100
DEFAULT_RATING = 0.0
DEFAULT_PRICE_LEVEL = 2
DEFAULT_DISTANCE_METERS = 5000


def _passes_filters(venue: Venue, filters: SearchFilters) -> bool:
    if filters.min_rating is not None and venue.rating is not None and venue.rating < filters.min_rating:
        return False
    if (
        filters.max_price_level is not None
        and venue.price_level is not None
        and venue.price_level > filters.max_price_level
    ):
        return False
    if filters.open_now and venue.is_open_now is not True:
        return False
    return True


def composite_score(venue: Venue) -> float:
    """작을수록 상위. 평점 → 낮은 가격 → 가까운 거리 순으로 영향이 크다."""
    rating = venue.rating if venue.rating is not None else DEFAULT_RATING
    price = venue.price_level if venue.price_level is not None else DEFAULT_PRICE_LEVEL
    distance = venue.distance_meters if venue.distance_meters is not None else DEFAULT_DISTANCE_METERS
    return -RATING_WEIGHT * rating + PRICE_WEIGHT * price + distance / DISTANCE_DIVISOR


def rank_and_filter(
    venues: Iterable[Venue],
    filters: SearchFilters | None = None,
    origin: Location | None = None,
) -> list[Venue]:
    """필터를 적용한 뒤 명시적 정렬 기준 또는 복합 점수로 정렬합니다.

    Args:
        venues: 후보 장소
        filters: 최소 평점/최대 가격대/영업 중/정렬 기준
        origin: 거리 정보가 없는 후보의 거리를 계산할 기준 위치

    Returns:
        필터를 통과한 장소의 정렬된 목록
    """
    resolved_filters = filters or SearchFilters()
    candidates = [with_distance(venue, origin) for venue in venues]
    kept = [venue for venue in candidates if _passes_filters(venue, resolved_filters)]

    if resolved_filters.sort_by == SortBy.RATING:
        return sorted(kept, key=lambda venue: -(venue.rating if venue.rating is not None else 0.0))
    if resolved_filters.sort_by == SortBy.PRICE:
        return sorted(kept, key=lambda venue: venue.price_level if venue.price_level is not None else 0)
    if resolved_filters.sort_by == SortBy.DISTANCE:
        # 거리 없음은 맨 뒤로 보낸다.
        return sorted(
            kept,
            key=lambda venue: venue.distance_meters if venue.distance_meters is not None else math.inf,
        )
    return sorted(kept, key=composite_score)
