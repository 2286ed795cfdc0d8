"""AI 그라운딩 응답 파싱: 도시 표식 분리와 참조 → 장소 변환."""

from __future__ import annotations

import re

from app.core.logger import get_logger
from app.core.place_ids import extract_coordinates_from_uri, extract_place_id
from app.schemas.place import GroundedAnswer, Location, Venue
from app.services.search_prompt import CITY_MARKER, NO_CITY_VALUE

logger = get_logger(__name__)

MAX_GROUNDED_RESULTS = 5

_CITY_LINE = re.compile(
    rf"^\s*\**\s*(?:{re.escape(CITY_MARKER)}|ГОРОД:)\s*(.*?)\s*\**\s*$",
    re.IGNORECASE,
)


def split_city_marker(text: str) -> tuple[str | None, str]:
    """응답 첫 줄의 도시 표식을 분리해 (도시명, 본문)을 반환합니다."""
    if not text:
        return None, ""

    lines = text.splitlines()
    for position, line in enumerate(lines):
        if not line.strip():
            continue
        match = _CITY_LINE.match(line)
        if not match:
            return None, text.strip()
        value = match.group(1).strip().strip(".").strip()
        city = None if not value or value.upper() == NO_CITY_VALUE else value
        return city, "\n".join(lines[position + 1 :]).strip()
    return None, text.strip()


def references_to_venues(answer: GroundedAnswer, limit: int = MAX_GROUNDED_RESULTS) -> list[Venue]:
    """그라운딩 참조를 장소 후보로 변환합니다.

    검증된 ID를 얻지 못한 참조는 ID 없이 유지되며, 이후 ID 재해석 대상이 된다.
    같은 ID 또는 같은 이름+URI를 가진 참조는 한 번만 사용한다.
    """
    venues: list[Venue] = []
    seen_keys: set[str] = set()

    for reference in answer.references:
        name = (reference.title or "").strip()
        if not name:
            continue

        place_id = extract_place_id(reference.place_id, reference.uri)
        key = place_id or f"{name.lower()}|{reference.uri or ''}"
        if key in seen_keys:
            continue
        seen_keys.add(key)

        coordinates = extract_coordinates_from_uri(reference.uri)
        venues.append(
            Venue(
                place_id=place_id,
                name=name,
                address=reference.address,
                source_uri=reference.uri,
                coordinates=Location(lat=coordinates[0], lon=coordinates[1]) if coordinates else None,
            )
        )
        if len(venues) >= limit:
            break

    unresolved = sum(1 for venue in venues if not venue.place_id)
    logger.info(
        "Grounding references parsed: references=%d venues=%d unresolved_ids=%d",
        len(answer.references),
        len(venues),
        unresolved,
    )
    return venues


def parse_grounded_answer(
    answer: GroundedAnswer,
    limit: int = MAX_GROUNDED_RESULTS,
) -> tuple[str | None, str, list[Venue]]:
    """(추출 도시, 표시용 본문, 장소 후보) 튜플을 반환합니다."""
    city, text = split_city_marker(answer.text)
    return city, text, references_to_venues(answer, limit)
