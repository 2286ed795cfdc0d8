"""외부 API 일일 호출 한도 판정 및 호출 원장 기록."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings
from app.core.logger import get_logger
from app.models.usage import ApiUsageRecord
from app.schemas.enums import ApiProvider, ApiType, FailurePolicy, QuotaScope

logger = get_logger(__name__)

# 호출 1회당 추정 비용(USD)
COST_TABLE_USD: dict[tuple[ApiProvider, ApiType], float] = {
    (ApiProvider.GEMINI, ApiType.SEARCH): 0.035,
    (ApiProvider.GEMINI, ApiType.TRANSLATE): 0.000075,
    (ApiProvider.GOOGLE_MAPS, ApiType.SEARCH): 0.032,
    (ApiProvider.GOOGLE_MAPS, ApiType.NEARBY): 0.032,
    (ApiProvider.GOOGLE_MAPS, ApiType.TEXTSEARCH): 0.032,
    (ApiProvider.GOOGLE_MAPS, ApiType.DETAILS): 0.017,
    (ApiProvider.GOOGLE_MAPS, ApiType.GEOCODE): 0.005,
}


@dataclass(frozen=True, slots=True)
class QuotaDecision:
    """쿼터 판정 결과."""

    allowed: bool
    reason: QuotaScope = QuotaScope.NONE
    remaining: int | None = None


@dataclass(slots=True)
class UsageStats:
    """일일 사용량 집계."""

    total_calls: int = 0
    cached_calls: int = 0
    total_cost_usd: float = 0.0
    calls_by_provider: dict[str, int] = field(default_factory=dict)


def estimate_cost(provider: ApiProvider, api_type: ApiType) -> float:
    """정적 비용표에서 호출 비용을 조회합니다. 표에 없으면 0을 반환합니다."""
    return COST_TABLE_USD.get((ApiProvider(provider), ApiType(api_type)), 0.0)


class QuotaGuard:
    """제공자별 전역/사용자 일일 한도를 관리합니다.

    판정은 저장소 장애 시 허용(fail-open)하고, 기록 실패는 로그만 남긴다.
    """

    CHECK_POLICY = FailurePolicy.FAIL_OPEN
    RECORD_POLICY = FailurePolicy.SWALLOW

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings
        self._clock = clock or (lambda: datetime.now(UTC))

    def _today(self) -> date:
        return self._clock().astimezone(UTC).date()

    def _limits(self, provider: ApiProvider) -> tuple[int, int]:
        if provider == ApiProvider.GEMINI:
            return self._settings.GEMINI_DAILY_GLOBAL_LIMIT, self._settings.GEMINI_DAILY_USER_LIMIT
        return self._settings.GOOGLE_MAPS_DAILY_GLOBAL_LIMIT, self._settings.GOOGLE_MAPS_DAILY_USER_LIMIT

    def _count_calls(self, db: Session, provider: ApiProvider, day: date, user_id: int | None = None) -> int:
        query = db.query(func.count(ApiUsageRecord.id)).filter(
            ApiUsageRecord.provider == provider.value,
            ApiUsageRecord.usage_date == day,
            ApiUsageRecord.from_cache.is_(False),
            ApiUsageRecord.quota_exceeded.is_(False),
        )
        if user_id is not None:
            query = query.filter(ApiUsageRecord.user_id == user_id)
        return int(query.scalar() or 0)

    def can_proceed(self, user_id: int | None, provider: ApiProvider) -> QuotaDecision:
        """전역 한도를 먼저, 이어서 사용자 한도를 확인합니다.

        한도가 0이면 해당 검사는 생략한다. 캐시 응답과 쿼터로 차단된 시도는 집계하지 않는다.
        """
        provider = ApiProvider(provider)
        global_limit, user_limit = self._limits(provider)
        day = self._today()

        try:
            with self._session_factory() as db:
                remaining: int | None = None
                if global_limit > 0:
                    global_calls = self._count_calls(db, provider, day)
                    if global_calls >= global_limit:
                        logger.warning(
                            "quota blocked: provider=%s scope=global calls=%d limit=%d",
                            provider,
                            global_calls,
                            global_limit,
                        )
                        return QuotaDecision(allowed=False, reason=QuotaScope.GLOBAL_LIMIT, remaining=0)
                    remaining = global_limit - global_calls

                if user_limit > 0 and user_id is not None:
                    user_calls = self._count_calls(db, provider, day, user_id=user_id)
                    if user_calls >= user_limit:
                        logger.info(
                            "quota blocked: provider=%s scope=user user_id=%s calls=%d limit=%d",
                            provider,
                            user_id,
                            user_calls,
                            user_limit,
                        )
                        return QuotaDecision(allowed=False, reason=QuotaScope.USER_LIMIT, remaining=0)
                    remaining = user_limit - user_calls

                return QuotaDecision(allowed=True, remaining=remaining)
        except SQLAlchemyError as exc:
            logger.error("quota check failed, allowing call: provider=%s error=%s", provider, exc)
            return QuotaDecision(allowed=True)

    def record_call(
        self,
        user_id: int | None,
        provider: ApiProvider,
        api_type: ApiType,
        *,
        cost: float | None = None,
        from_cache: bool = False,
        quota_exceeded: bool = False,
    ) -> None:
        """호출 원장에 한 행을 추가합니다. 캐시 응답의 기본 비용은 0입니다."""
        provider = ApiProvider(provider)
        api_type = ApiType(api_type)
        if cost is None:
            cost = 0.0 if from_cache or quota_exceeded else estimate_cost(provider, api_type)

        now = self._clock()
        try:
            with self._session_factory() as db:
                db.add(
                    ApiUsageRecord(
                        user_id=user_id,
                        provider=provider.value,
                        api_type=api_type.value,
                        cost_usd=cost,
                        from_cache=from_cache,
                        quota_exceeded=quota_exceeded,
                        usage_date=now.astimezone(UTC).date(),
                        created_at=now,
                    )
                )
                db.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "api usage record failed: provider=%s api_type=%s user_id=%s error=%s",
                provider,
                api_type,
                user_id,
                exc,
            )

    def daily_stats(self, day: date | None = None) -> UsageStats:
        """하루 동안의 전체 사용량을 집계합니다."""
        return self._collect_stats(day or self._today())

    def user_daily_stats(self, user_id: int, day: date | None = None) -> UsageStats:
        """특정 사용자의 하루 사용량을 집계합니다."""
        return self._collect_stats(day or self._today(), user_id=user_id)

    def _collect_stats(self, day: date, user_id: int | None = None) -> UsageStats:
        stats = UsageStats()
        try:
            with self._session_factory() as db:
                query = db.query(ApiUsageRecord).filter(ApiUsageRecord.usage_date == day)
                if user_id is not None:
                    query = query.filter(ApiUsageRecord.user_id == user_id)
                for record in query.all():
                    stats.total_calls += 1
                    stats.total_cost_usd += record.cost_usd or 0.0
                    if record.from_cache:
                        stats.cached_calls += 1
                    stats.calls_by_provider[record.provider] = stats.calls_by_provider.get(record.provider, 0) + 1
        except SQLAlchemyError as exc:
            logger.error("usage stats query failed: day=%s user_id=%s error=%s", day, user_id, exc)
            return UsageStats()
        stats.total_cost_usd = round(stats.total_cost_usd, 6)
        return stats
