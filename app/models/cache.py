# app/models/cache.py
from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


# 검색 결과 캐시: (정규화 검색어, 반올림 좌표)의 해시가 키
class SearchCacheEntry(Base):
    __tablename__ = "search_cache"

    cache_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    query: Mapped[str] = mapped_column(String(500), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)


# 장소 상세 캐시 (리뷰 없이 조회한 결과만 저장)
class PlaceDetailsCacheEntry(Base):
    __tablename__ = "place_details_cache"

    place_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)


# 도시 지오코딩 캐시
class GeocodeCacheEntry(Base):
    __tablename__ = "geocode_cache"

    city_key: Mapped[str] = mapped_column(String(200), primary_key=True)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
