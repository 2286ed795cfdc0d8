"""검색 집계기 입출력 모델."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.schemas.place import Location, SearchFilters, UserPreferences, Venue


class SearchContext(BaseModel):
    """이전 턴 맥락."""

    last_query: str | None = Field(default=None, description="이전 검색어")
    venues: list[Venue] = Field(default_factory=list, description="이전에 보여준 장소")


class SearchRequest(BaseModel):
    """집계 검색 요청."""

    query: str = Field(..., description="검색어")
    origin: Location = Field(..., description="검색 기준 위치")
    user_id: int | None = Field(default=None, description="사용자 ID")
    context: SearchContext | None = Field(default=None, description="후속 질문 맥락")
    preferences: UserPreferences | None = Field(default=None, description="사용자 장기 선호")
    filters: SearchFilters = Field(default_factory=SearchFilters, description="검색 필터")
    exclude_ids: list[str] = Field(default_factory=list, description="제외할 장소 ID")
    seen_venues: list[Venue] = Field(default_factory=list, description="좌표 근접 중복 판정용 기존 장소")
    required_count: int | None = Field(default=None, ge=1, le=5, description="필요한 최소 장소 수")
    exclude_types: list[str] = Field(default_factory=list, description="제외할 장소 유형")
    check_quota: bool = Field(default=True, description="쿼터 검사 여부")


class SearchOutcome(BaseModel):
    """집계 검색 결과."""

    text: str = Field(default="", description="AI 응답 본문(표시용)")
    venues: list[Venue] = Field(default_factory=list, description="중복 제거된 장소")
    extracted_city: str | None = Field(default=None, description="AI가 추출한 도시명")
    from_cache: bool = Field(default=False, description="캐시 응답 여부")
