"""대화 세션 및 응답 디스크립터 스키마."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.enums import DialogueMode
from app.schemas.place import Location, Venue


class LocationSnapshot(BaseModel):
    """특정 시점에 공유된 사용자 위치."""

    location: Location = Field(..., description="공유된 좌표")
    captured_at: datetime = Field(..., description="공유 시각(UTC)")


class ResultWindow(BaseModel):
    """첫 페이지 이후 페이지네이션을 위한 결과 창."""

    query: str | None = Field(default=None, description="결과를 만든 검색어")
    venues: list[Venue] = Field(default_factory=list, description="랭킹된 전체 후보")
    cursor: int = Field(default=0, ge=0, description="다음 페이지 시작 위치")

    @property
    def has_more(self) -> bool:
        return self.cursor < len(self.venues)


class ConversationSession(BaseModel):
    """사용자별 대화 세션 레코드."""

    user_id: int = Field(..., description="사용자 ID")
    location_snapshot: LocationSnapshot | None = Field(default=None, description="마지막 위치 스냅샷")
    dialogue_mode: DialogueMode = Field(default=DialogueMode.AWAITING_LOCATION, description="대화 상태")
    last_query: str | None = Field(default=None, description="마지막 검색어")
    last_shown_venues: list[Venue] = Field(default_factory=list, description="마지막으로 보여준 장소")
    shown_venue_ids: list[str] = Field(default_factory=list, description="이미 보여준 장소 ID (추가 전용)")
    result_window: ResultWindow | None = Field(default=None, description="페이지네이션 상태")
    created_at: datetime | None = Field(default=None, description="생성 시각")
    updated_at: datetime | None = Field(default=None, description="갱신 시각")


class ActionButton(BaseModel):
    """응답에 첨부되는 버튼. ``action`` 콜백 또는 ``url`` 링크 중 하나를 가진다."""

    label: str = Field(..., description="버튼 라벨")
    action: str | None = Field(default=None, description="콜백 액션 토큰")
    url: str | None = Field(default=None, description="내비게이션 링크")


class ResponseDescriptor(BaseModel):
    """전송 계층이 렌더링할 단일 응답."""

    text: str = Field(..., description="응답 본문")
    buttons: list[list[ActionButton]] = Field(default_factory=list, description="버튼 그리드")
    request_location: bool = Field(default=False, description="위치 공유 요청 UI 표시 여부")


class MessageRequest(BaseModel):
    """텍스트 발화 요청."""

    user_id: int = Field(..., description="사용자 ID")
    text: str = Field(..., min_length=1, max_length=1000, description="사용자 발화")


class LocationRequest(BaseModel):
    """위치 공유 요청."""

    user_id: int = Field(..., description="사용자 ID")
    latitude: float = Field(..., ge=-90, le=90, description="위도")
    longitude: float = Field(..., ge=-180, le=180, description="경도")


class ActionRequest(BaseModel):
    """버튼 콜백 요청."""

    user_id: int = Field(..., description="사용자 ID")
    action: str = Field(..., min_length=1, max_length=200, description="콜백 액션 토큰")


class ResetRequest(BaseModel):
    """세션 초기화 요청."""

    user_id: int = Field(..., description="사용자 ID")
