"""구조화 장소 검색 서비스 추상 프로토콜 정의."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from app.schemas.place import Location, Venue

STATUS_OK = "OK"
STATUS_ZERO_RESULTS = "ZERO_RESULTS"
STATUS_INVALID_REQUEST = "INVALID_REQUEST"
STATUS_REQUEST_FAILED = "REQUEST_FAILED"


@dataclass(frozen=True, slots=True)
class PlacesResponse:
    """제공자 상태 코드와 결과 목록.

    OK/ZERO_RESULTS 외의 상태는 복구 가능한 실패로 취급한다.
    """

    status: str
    places: list[Venue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status in (STATUS_OK, STATUS_ZERO_RESULTS)

    @property
    def first(self) -> Venue | None:
        return self.places[0] if self.places else None


class PlacesServiceProtocol(ABC):
    """구조화 장소 검색 API 호출을 위한 인터페이스를 정의합니다.

    구현체는 예외를 던지지 않고 상태 코드로 실패를 표현해야 한다.
    """

    @abstractmethod
    async def nearby(self, location: Location, radius_meters: int, keyword: str) -> PlacesResponse:
        """위치 주변에서 키워드로 장소를 검색합니다."""
        raise NotImplementedError

    @abstractmethod
    async def text_search(
        self,
        query: str,
        location: Location | None = None,
        radius_meters: int | None = None,
    ) -> PlacesResponse:
        """자유 텍스트로 장소를 검색합니다. 위치가 있으면 편향(bias)으로 사용합니다."""
        raise NotImplementedError

    @abstractmethod
    async def details(self, place_id: str, fields: tuple[str, ...]) -> PlacesResponse:
        """장소 상세 정보를 조회합니다. 결과는 최대 1건입니다."""
        raise NotImplementedError

    @abstractmethod
    async def geocode(self, address: str) -> PlacesResponse:
        """주소/지명을 좌표로 변환합니다. ``Venue.types``에 결과 유형이 담깁니다."""
        raise NotImplementedError
