"""API 의존성 모음."""

from functools import lru_cache

from fastapi import Header, HTTPException, status
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings
from app.database import get_engine, get_session_local, init_db
from app.services.activity_log import ActivityLog
from app.services.conversation_state import ConversationStateService
from app.services.dialogue_service import DialogueOrchestrator
from app.services.filter_extractor import FilterExtractor
from app.services.google_places_service import GooglePlacesService
from app.services.grounded_search_service import GeminiGroundedSearchService
from app.services.quota_guard import QuotaGuard
from app.services.result_cache import ResultCache
from app.services.review_translator import ReviewTranslator
from app.services.search_aggregator import SearchAggregator
from app.services.session_repository import SqlSessionRepository


def require_service_secret(
    x_service_secret: str | None = Header(default=None, alias="x-service-secret"),
) -> None:
    """서비스 간 인증을 위한 시크릿 헤더를 검증한다."""
    settings = get_settings()
    if not settings.SERVICE_SECRET:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="서비스 시크릿 설정이 없습니다.",
        )

    if x_service_secret != settings.SERVICE_SECRET:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="유효하지 않은 서비스 시크릿입니다.",
        )


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    """테이블을 준비한 뒤 세션 팩토리를 반환합니다."""
    init_db(get_engine())
    return get_session_local()


@lru_cache
def get_quota_guard() -> QuotaGuard:
    """`QuotaGuard` 인스턴스를 제공합니다."""
    return QuotaGuard(get_session_factory(), get_settings())


@lru_cache
def get_dialogue_orchestrator() -> DialogueOrchestrator:
    """대화 오케스트레이터와 하위 컴포넌트를 한 번만 조립합니다."""
    settings = get_settings()
    session_factory = get_session_factory()

    aggregator = SearchAggregator(
        settings=settings,
        places_service=GooglePlacesService.from_settings(settings),
        grounded_search=GeminiGroundedSearchService.from_settings(settings),
        quota_guard=get_quota_guard(),
        result_cache=ResultCache(session_factory, settings),
        translator=ReviewTranslator(settings),
    )
    state_service = ConversationStateService(SqlSessionRepository(session_factory), settings)
    return DialogueOrchestrator(
        settings=settings,
        state_service=state_service,
        aggregator=aggregator,
        filter_extractor=FilterExtractor(settings),
        activity_log=ActivityLog(session_factory),
    )
