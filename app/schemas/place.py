"""장소 검색 결과를 표준화한 도메인 모델."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.place_ids import is_valid_place_id
from app.schemas.enums import SortBy


class Location(BaseModel):
    """WGS84 좌표. 불변 값 객체."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, description="위도")
    lon: float = Field(..., ge=-180, le=180, description="경도")


class PlaceReview(BaseModel):
    """장소 리뷰."""

    author: str | None = Field(default=None, description="작성자")
    rating: float | None = Field(default=None, description="리뷰 평점")
    text: str = Field(default="", description="표시용 리뷰 본문")
    original_text: str | None = Field(default=None, description="번역 전 원문")
    relative_time: str | None = Field(default=None, description="작성 시점 설명")


class Venue(BaseModel):
    """검색 후보 장소."""

    place_id: str | None = Field(default=None, description="제공자 장소 ID(미검증일 수 있음)")
    name: str = Field(..., description="장소 이름")
    address: str | None = Field(default=None, description="주소")
    rating: float | None = Field(default=None, description="평점 (0~5)")
    price_level: int | None = Field(default=None, description="가격대 (0~4)")
    is_open_now: bool | None = Field(default=None, description="현재 영업 여부")
    coordinates: Location | None = Field(default=None, description="좌표")
    distance_meters: int | None = Field(default=None, description="기준 위치로부터의 거리(m)")
    source_uri: str | None = Field(default=None, description="출처 지도 URI")
    types: list[str] = Field(default_factory=list, description="장소 유형 목록")
    phone_number: str | None = Field(default=None, description="전화번호")
    website: str | None = Field(default=None, description="웹사이트")
    editorial_summary: str | None = Field(default=None, description="요약 설명")
    reviews: list[PlaceReview] = Field(default_factory=list, description="선택된 리뷰")

    @field_validator("rating", mode="before")
    @classmethod
    def _clamp_rating(cls, value: object) -> float | None:
        if value is None:
            return None
        try:
            return min(5.0, max(0.0, float(value)))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None

    @field_validator("price_level", mode="before")
    @classmethod
    def _clamp_price_level(cls, value: object) -> int | None:
        if value is None:
            return None
        try:
            return min(4, max(0, int(value)))  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return None

    @property
    def has_verified_id(self) -> bool:
        return is_valid_place_id(self.place_id)


class SearchFilters(BaseModel):
    """발화에서 추출한 검색 필터."""

    min_rating: float | None = Field(default=None, description="최소 평점 (1~5)")
    max_price_level: int | None = Field(default=None, description="최대 가격대 (0~4)")
    open_now: bool | None = Field(default=None, description="현재 영업 중인 곳만")
    sort_by: SortBy | None = Field(default=None, description="정렬 기준")

    @field_validator("min_rating", mode="before")
    @classmethod
    def _clamp_min_rating(cls, value: object) -> float | None:
        if value is None:
            return None
        try:
            return min(5.0, max(1.0, float(value)))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None

    @field_validator("max_price_level", mode="before")
    @classmethod
    def _clamp_max_price_level(cls, value: object) -> int | None:
        if value is None:
            return None
        try:
            return min(4, max(0, int(value)))  # type: ignore[call-overload]
        except (TypeError, ValueError):
            return None

    @field_validator("sort_by", mode="before")
    @classmethod
    def _normalize_sort_by(cls, value: object) -> str | None:
        if isinstance(value, str) and value.strip().lower() in {item.value for item in SortBy}:
            return value.strip().lower()
        return None

    @property
    def is_empty(self) -> bool:
        return (
            self.min_rating is None
            and self.max_price_level is None
            and not self.open_now
            and self.sort_by is None
        )


class GroundingReference(BaseModel):
    """AI 검색이 인용한 실제 장소 참조."""

    title: str = Field(default="", description="장소 이름")
    uri: str | None = Field(default=None, description="지도 URI")
    place_id: str | None = Field(default=None, description="제공자가 직접 준 장소 ID")
    address: str | None = Field(default=None, description="주소")


class GroundedAnswer(BaseModel):
    """AI 그라운딩 검색 응답."""

    text: str = Field(default="", description="모델 응답 본문")
    references: list[GroundingReference] = Field(default_factory=list, description="그라운딩 참조 목록")


class UserPreferences(BaseModel):
    """사용자 장기 선호."""

    dietary: list[str] = Field(default_factory=list, description="식단 제한")
    transport: str | None = Field(default=None, description="주 이동 수단")
    notes: str | None = Field(default=None, description="기타 메모")

    @property
    def is_empty(self) -> bool:
        return not (self.dietary or self.transport or self.notes)
