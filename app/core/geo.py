"""좌표 기반 거리 계산, 필터링, 정렬, 중복 제거 유틸."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from app.schemas.place import Location, Venue

EARTH_RADIUS_METERS = 6_371_000
SAME_PLACE_THRESHOLD_METERS = 15


def distance_meters(a: Location, b: Location) -> int:
    """두 좌표 사이의 대원 거리(haversine)를 미터 단위 정수로 반환합니다."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    d_lat = lat2 - lat1
    d_lon = math.radians(b.lon - a.lon)

    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return round(EARTH_RADIUS_METERS * c)


def resolve_distance(venue: Venue, origin: Location | None) -> int | None:
    """사전 계산된 거리를 우선 사용하고, 없으면 좌표로 계산합니다."""
    if venue.distance_meters is not None:
        return venue.distance_meters
    if origin is None or venue.coordinates is None:
        return None
    return distance_meters(origin, venue.coordinates)


def with_distance(venue: Venue, origin: Location | None) -> Venue:
    """거리 정보가 비어 있으면 채운 사본을 반환합니다."""
    if venue.distance_meters is not None:
        return venue
    distance = resolve_distance(venue, origin)
    if distance is None:
        return venue
    return venue.model_copy(update={"distance_meters": distance})


def filter_within_radius(venues: Iterable[Venue], origin: Location, radius_meters: int) -> list[Venue]:
    """반경 안에 있는 장소만 남깁니다. 거리도 좌표도 없는 장소는 제외됩니다."""
    kept: list[Venue] = []
    for venue in venues:
        distance = resolve_distance(venue, origin)
        if distance is not None and distance <= radius_meters:
            kept.append(venue)
    return kept


def sort_by_distance(venues: Iterable[Venue]) -> list[Venue]:
    """거리 오름차순 정렬. 거리가 없으면 0(같은 위치)으로 간주합니다."""
    return sorted(venues, key=lambda venue: venue.distance_meters or 0)


def dedupe_by_id(venues: Iterable[Venue]) -> list[Venue]:
    """같은 ID가 반복되면 알려진 거리가 더 짧은 항목을 남깁니다.

    동률이거나 양쪽 모두 거리를 모르면 먼저 나온 항목이 유지된다.
    ID가 없는 장소는 병합하지 않는다. 출력 순서는 첫 등장 순서를 따른다.
    """
    by_id: dict[str, Venue] = {}
    order: list[str | Venue] = []

    for venue in venues:
        if not venue.place_id:
            order.append(venue)
            continue

        existing = by_id.get(venue.place_id)
        if existing is None:
            by_id[venue.place_id] = venue
            order.append(venue.place_id)
            continue

        if venue.distance_meters is None:
            continue
        if existing.distance_meters is None or venue.distance_meters < existing.distance_meters:
            by_id[venue.place_id] = venue

    return [by_id[item] if isinstance(item, str) else item for item in order]


def is_same_place(a: Venue, b: Venue, threshold_meters: int = SAME_PLACE_THRESHOLD_METERS) -> bool:
    """검증된 ID가 같으면 같은 장소로 봅니다.

    양쪽 모두 검증된 ID가 있으면 ID만 비교한다. 한쪽이라도 ID가 없으면
    좌표가 임계 거리 안인지로 판단한다.
    """
    if a.has_verified_id and b.has_verified_id:
        return a.place_id == b.place_id
    if a.coordinates is None or b.coordinates is None:
        return False
    return distance_meters(a.coordinates, b.coordinates) <= threshold_meters


def exclude_seen(
    venues: Iterable[Venue],
    exclude_ids: Iterable[str],
    seen_venues: Sequence[Venue] = (),
) -> list[Venue]:
    """이미 보여준 ID이거나 기존 장소와 좌표상 겹치는 후보를 제거합니다."""
    excluded = set(exclude_ids)
    kept: list[Venue] = []
    for venue in venues:
        if venue.place_id and venue.place_id in excluded:
            continue
        if any(is_same_place(venue, seen) for seen in seen_venues):
            continue
        kept.append(venue)
    return kept


def merge_unique(primary: Sequence[Venue], secondary: Iterable[Venue]) -> list[Venue]:
    """``primary`` 뒤에 ``secondary``를 이어 붙이되 같은 장소는 건너뜁니다."""
    merged = dedupe_by_id(primary)
    for venue in secondary:
        if venue.place_id and any(venue.place_id == existing.place_id for existing in merged):
            continue
        if any(is_same_place(venue, existing) for existing in merged):
            continue
        merged.append(venue)
    return merged
