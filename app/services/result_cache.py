"""검색/상세/지오코딩 결과 캐시.

저장소 오류는 읽기 시 캐시 미스로, 쓰기 시 로그로만 처리한다.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings
from app.core.logger import get_logger
from app.models.cache import GeocodeCacheEntry, PlaceDetailsCacheEntry, SearchCacheEntry
from app.schemas.enums import FailurePolicy
from app.schemas.place import Location, Venue
from app.schemas.search import SearchOutcome

logger = get_logger(__name__)


def normalize_query(query: str) -> str:
    return " ".join((query or "").lower().split())


def build_search_cache_key(query: str, location: Location) -> str:
    """정규화 검색어와 0.01도 단위로 반올림한 좌표의 sha256 해시."""
    raw = f"{normalize_query(query)}|{round(location.lat, 2):.2f},{round(location.lon, 2):.2f}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite는 tz 정보 없이 돌려준다
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class ResultCache:
    """SQLAlchemy 테이블 기반 TTL 캐시."""

    FAILURE_POLICY = FailurePolicy.MISS_ON_ERROR

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._search_ttl = timedelta(hours=settings.SEARCH_CACHE_TTL_HOURS)
        self._details_ttl = timedelta(hours=settings.DETAILS_CACHE_TTL_HOURS)
        self._geocode_ttl = timedelta(days=settings.GEOCODE_CACHE_TTL_DAYS)
        self._clock = clock or (lambda: datetime.now(UTC))

    def _now(self) -> datetime:
        return _as_utc(self._clock())

    def _is_fresh(self, expires_at: datetime) -> bool:
        return _as_utc(expires_at) > self._now()

    def get_search(self, query: str, location: Location) -> SearchOutcome | None:
        key = build_search_cache_key(query, location)
        try:
            with self._session_factory() as db:
                entry = db.get(SearchCacheEntry, key)
                if entry is None or not self._is_fresh(entry.expires_at):
                    return None
                payload = dict(entry.payload)
        except SQLAlchemyError as exc:
            logger.error("search cache read failed: key=%s error=%s", key[:12], exc)
            return None

        try:
            outcome = SearchOutcome.model_validate(payload)
        except ValidationError as exc:
            logger.warning("search cache payload invalid: key=%s error=%s", key[:12], exc)
            return None
        logger.info("search cache hit: key=%s venues=%d", key[:12], len(outcome.venues))
        return outcome.model_copy(update={"from_cache": True})

    def put_search(self, query: str, location: Location, outcome: SearchOutcome) -> None:
        key = build_search_cache_key(query, location)
        payload = outcome.model_copy(update={"from_cache": False}).model_dump(mode="json")
        self._upsert(
            SearchCacheEntry,
            key,
            {"query": normalize_query(query)[:500], "payload": payload, "expires_at": self._now() + self._search_ttl},
        )

    def get_venue_details(self, place_id: str) -> Venue | None:
        try:
            with self._session_factory() as db:
                entry = db.get(PlaceDetailsCacheEntry, place_id)
                if entry is None or not self._is_fresh(entry.expires_at):
                    return None
                payload = dict(entry.payload)
        except SQLAlchemyError as exc:
            logger.error("details cache read failed: place_id=%s error=%s", place_id, exc)
            return None

        try:
            return Venue.model_validate(payload)
        except ValidationError as exc:
            logger.warning("details cache payload invalid: place_id=%s error=%s", place_id, exc)
            return None

    def put_venue_details(self, venue: Venue) -> None:
        if not venue.place_id:
            return
        self._upsert(
            PlaceDetailsCacheEntry,
            venue.place_id,
            {"payload": venue.model_dump(mode="json"), "expires_at": self._now() + self._details_ttl},
        )

    def get_geocode(self, city: str) -> Location | None:
        key = normalize_query(city)
        if not key:
            return None
        try:
            with self._session_factory() as db:
                entry = db.get(GeocodeCacheEntry, key)
                if entry is None or not self._is_fresh(entry.expires_at):
                    return None
                return Location(lat=entry.latitude, lon=entry.longitude)
        except SQLAlchemyError as exc:
            logger.error("geocode cache read failed: city=%s error=%s", key, exc)
            return None

    def put_geocode(self, city: str, location: Location) -> None:
        key = normalize_query(city)
        if not key:
            return
        self._upsert(
            GeocodeCacheEntry,
            key,
            {"latitude": location.lat, "longitude": location.lon, "expires_at": self._now() + self._geocode_ttl},
        )

    def _upsert(self, model: type, key: str, values: dict) -> None:
        try:
            with self._session_factory() as db:
                entry = db.get(model, key)
                if entry is None:
                    primary_key = model.__mapper__.primary_key[0].key
                    db.add(model(**{primary_key: key}, **values))
                else:
                    for name, value in values.items():
                        setattr(entry, name, value)
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("cache write failed: table=%s error=%s", model.__tablename__, exc)
