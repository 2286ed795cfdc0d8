"""Google 장소 식별자 검증 및 URI 기반 추출 유틸."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, unquote, urlparse

PLACEHOLDER_PREFIX = "maps_"
_MIN_PLACE_ID_LENGTH = 20
_PLACE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_EMBEDDED_PLACE_ID_PATTERN = re.compile(r"\b(ChIJ[A-Za-z0-9_-]{16,})")
_QUERY_ID_KEYS = ("query_place_id", "place_id", "placeid", "ftid")
_COORDINATE_PATTERNS = (
    re.compile(r"@(-?\d{1,2}\.\d+),(-?\d{1,3}\.\d+)"),
    re.compile(r"!3d(-?\d{1,2}\.\d+)!4d(-?\d{1,3}\.\d+)"),
    re.compile(r"[?&](?:q|query|ll)=(-?\d{1,2}\.\d+),\s*(-?\d{1,3}\.\d+)"),
)


def is_valid_place_id(place_id: str | None) -> bool:
    """내비게이션에 사용할 수 있는 검증된 장소 ID인지 확인합니다.

    20자 이상, 영숫자/대시/밑줄로만 구성되어야 하며 내부 플레이스홀더 접두사를 가지면 안 된다.
    """
    if not place_id or len(place_id) < _MIN_PLACE_ID_LENGTH:
        return False
    if place_id.startswith(PLACEHOLDER_PREFIX):
        return False
    return bool(_PLACE_ID_PATTERN.match(place_id))


def _strip_resource_prefix(raw: str) -> str:
    return raw.split("/", 1)[1] if raw.startswith("places/") else raw


def _id_from_query(uri: str) -> str | None:
    parsed = urlparse(uri)
    params = parse_qs(parsed.query)
    for key in _QUERY_ID_KEYS:
        for value in params.get(key, []):
            candidate = _strip_resource_prefix(value.strip())
            if is_valid_place_id(candidate):
                return candidate

    match = _EMBEDDED_PLACE_ID_PATTERN.search(unquote(uri))
    if match and is_valid_place_id(match.group(1)):
        return match.group(1)
    return None


def _id_from_cid(uri: str) -> str | None:
    params = parse_qs(urlparse(uri).query)
    for value in params.get("cid", []):
        candidate = value.strip()
        if candidate.isdigit() and is_valid_place_id(candidate):
            return candidate
    return None


def extract_place_id(direct_id: str | None, uri: str | None) -> str | None:
    """그라운딩 참조에서 장소 ID를 정해진 순서로 추출합니다.

    순서: 직접 ID → URI 내부에 인코딩된 ID → 숫자형 대체 ID(cid).
    각 후보는 ``is_valid_place_id``를 통과해야 채택된다.
    """
    if direct_id:
        candidate = _strip_resource_prefix(direct_id.strip())
        if is_valid_place_id(candidate):
            return candidate

    if not uri:
        return None

    return _id_from_query(uri) or _id_from_cid(uri)


def extract_coordinates_from_uri(uri: str | None) -> tuple[float, float] | None:
    """지도 URI에 포함된 좌표를 (lat, lon)으로 추출합니다."""
    if not uri:
        return None
    decoded = unquote(uri)
    for pattern in _COORDINATE_PATTERNS:
        match = pattern.search(decoded)
        if not match:
            continue
        lat, lon = float(match.group(1)), float(match.group(2))
        if -90 <= lat <= 90 and -180 <= lon <= 180:
            return lat, lon
    return None
