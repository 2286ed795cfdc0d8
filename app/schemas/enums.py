"""도메인 전반에서 공유하는 열거형 정의."""

from enum import StrEnum


class DialogueMode(StrEnum):
    """대화 세션 상태."""

    FRESH = "fresh"
    AWAITING_LOCATION = "awaiting_location"
    AWAITING_FOLLOW_UP = "awaiting_follow_up"


class UtteranceKind(StrEnum):
    """발화 분류 결과."""

    ROUTE_REQUEST = "route_request"
    FOLLOW_UP = "follow_up"
    FRESH_SEARCH = "fresh_search"


class FollowUpKind(StrEnum):
    """후속 질문 세부 유형."""

    COMPARISON = "comparison"
    DETAIL = "detail"
    GENERAL = "general"


class SearchStatus(StrEnum):
    """한 번의 검색 흐름이 끝난 결과."""

    FOUND = "found"
    NO_RESULTS = "no_results"
    QUOTA_EXHAUSTED = "quota_exhausted"
    FAILED = "failed"


class SortBy(StrEnum):
    """명시적 정렬 기준."""

    RATING = "rating"
    PRICE = "price"
    DISTANCE = "distance"


class UrgencyTier(StrEnum):
    """검색 긴급도."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ApiProvider(StrEnum):
    """쿼터 추적 대상 외부 제공자."""

    GEMINI = "gemini"
    GOOGLE_MAPS = "google_maps"


class ApiType(StrEnum):
    """외부 호출 유형."""

    SEARCH = "search"
    DETAILS = "details"
    GEOCODE = "geocode"
    TRANSLATE = "translate"
    NEARBY = "nearby"
    TEXTSEARCH = "textsearch"


class QuotaScope(StrEnum):
    """쿼터 판정 사유."""

    NONE = "none"
    USER_LIMIT = "user_limit"
    GLOBAL_LIMIT = "global_limit"


class FailurePolicy(StrEnum):
    """컴포넌트별 인프라 장애 처리 방식."""

    FAIL_OPEN = "fail_open"
    SWALLOW = "swallow"
    MISS_ON_ERROR = "miss_on_error"
    PROPAGATE = "propagate"
