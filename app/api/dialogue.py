"""대화형 장소 탐색 API."""

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends

from app.api.dependencies import get_dialogue_orchestrator, get_quota_guard, require_service_secret
from app.core.logger import get_logger
from app.schemas.dialogue import (
    ActionRequest,
    LocationRequest,
    MessageRequest,
    ResetRequest,
    ResponseDescriptor,
)
from app.services.dialogue_service import DialogueOrchestrator
from app.services.quota_guard import QuotaGuard

router = APIRouter(
    prefix="/api/v1/dialogue",
    tags=["dialogue"],
    dependencies=[Depends(require_service_secret)],
)
logger = get_logger(__name__)


@router.post("/message", response_model=ResponseDescriptor)
async def post_message(
    request: MessageRequest,
    orchestrator: DialogueOrchestrator = Depends(get_dialogue_orchestrator),
) -> ResponseDescriptor:
    """사용자 발화 한 턴을 처리한다."""
    return await orchestrator.handle_message(request.user_id, request.text)


@router.post("/location", response_model=ResponseDescriptor)
async def post_location(
    request: LocationRequest,
    orchestrator: DialogueOrchestrator = Depends(get_dialogue_orchestrator),
) -> ResponseDescriptor:
    """사용자 위치 공유를 반영한다."""
    return await orchestrator.handle_location(request.user_id, request.latitude, request.longitude)


@router.post("/action", response_model=ResponseDescriptor)
async def post_action(
    request: ActionRequest,
    orchestrator: DialogueOrchestrator = Depends(get_dialogue_orchestrator),
) -> ResponseDescriptor:
    """버튼 콜백을 처리한다."""
    return await orchestrator.handle_action(request.user_id, request.action)


@router.post("/reset", response_model=ResponseDescriptor)
async def post_reset(
    request: ResetRequest,
    orchestrator: DialogueOrchestrator = Depends(get_dialogue_orchestrator),
) -> ResponseDescriptor:
    """세션을 초기화한다."""
    return await orchestrator.reset(request.user_id)


@router.get("/stats")
def get_stats(
    day: date | None = None,
    user_id: int | None = None,
    quota_guard: QuotaGuard = Depends(get_quota_guard),
) -> dict:
    """일일 외부 API 사용량과 추정 비용을 반환한다."""
    if user_id is not None:
        stats = quota_guard.user_daily_stats(user_id, day)
    else:
        stats = quota_guard.daily_stats(day)
    logger.info("usage stats requested: day=%s user_id=%s calls=%d", day, user_id, stats.total_calls)
    return asdict(stats)
