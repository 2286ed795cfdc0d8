"""Stage 기반 LLM 라우팅 유틸."""

from __future__ import annotations

from enum import StrEnum
from functools import lru_cache
from time import perf_counter
from typing import Any

from langchain_openai import ChatOpenAI

from app.core.config import Settings
from app.core.logger import get_logger
from app.core.timeout_policy import build_timeout_policy

logger = get_logger(__name__)


class Tier(StrEnum):
    """Stage 라우팅 tier."""

    SPEED = "SPEED"
    COST = "COST"


class Stage(StrEnum):
    """LLM 호출 stage."""

    FILTER_EXTRACTION = "FILTER_EXTRACTION"
    REVIEW_TRANSLATION = "REVIEW_TRANSLATION"


_STAGE_TIER_MAP: dict[Stage, Tier] = {
    Stage.FILTER_EXTRACTION: Tier.SPEED,
    Stage.REVIEW_TRANSLATION: Tier.COST,
}


class LLMUnavailableError(RuntimeError):
    """LLM 키가 설정되지 않은 경우."""


def stage_to_tier(stage: Stage) -> Tier:
    """Stage를 tier로 매핑합니다."""
    return _STAGE_TIER_MAP[stage]


def resolve_model(stage: Stage, settings: Settings) -> tuple[str, Tier | None, bool]:
    """설정과 stage를 기반으로 (모델, tier, 라우팅 여부)를 선택합니다."""
    fallback_model = settings.LLM_MODEL_NAME.strip()
    if not settings.ENABLE_STAGE_LLM_ROUTING:
        return fallback_model, None, False

    tier = stage_to_tier(stage)
    tier_model = (settings.LLM_MODEL_SPEED if tier == Tier.SPEED else settings.LLM_MODEL_COST).strip()
    return tier_model or fallback_model, tier, True


def is_llm_configured(settings: Settings) -> bool:
    return bool(settings.OPENAI_API_KEY.strip())


@lru_cache(maxsize=32)
def _get_chat_openai_client(model: str, temperature: float, timeout_seconds: int, api_key: str) -> ChatOpenAI:
    return ChatOpenAI(
        model=model,
        temperature=temperature,
        api_key=api_key,
        request_timeout=timeout_seconds,
    )


def clear_llm_client_cache() -> None:
    """테스트/운영 시 클라이언트 캐시를 비웁니다."""
    _get_chat_openai_client.cache_clear()


async def ainvoke(
    stage: Stage,
    payload: Any,
    *,
    settings: Settings,
    temperature: float = 0.0,
) -> Any:
    """Stage 기준으로 모델을 선택해 비동기 LLM 호출을 수행합니다.

    stage 모델 호출이 실패하면 기본 모델로 한 번 재시도한다.

    Raises:
        LLMUnavailableError: OPENAI_API_KEY 미설정
    """
    if not is_llm_configured(settings):
        raise LLMUnavailableError("OPENAI_API_KEY is not configured.")

    timeout_seconds = build_timeout_policy(settings).llm_timeout_seconds
    selected_model, tier, routing_enabled = resolve_model(stage, settings)
    fallback_model = settings.LLM_MODEL_NAME.strip()
    candidates = [selected_model]
    if routing_enabled and fallback_model and fallback_model != selected_model:
        candidates.append(fallback_model)

    last_error: Exception | None = None
    for attempt, model in enumerate(candidates):
        started = perf_counter()
        client = _get_chat_openai_client(model, float(temperature), timeout_seconds, settings.OPENAI_API_KEY)
        try:
            response = await client.ainvoke(payload)
        except Exception as exc:
            last_error = exc
            logger.warning(
                "LLM call failed: stage=%s tier=%s model=%s fallback_used=%s latency_ms=%.1f",
                stage.value,
                tier.value if tier else None,
                model,
                attempt > 0,
                (perf_counter() - started) * 1000,
                exc_info=exc,
            )
            continue

        logger.info(
            "LLM call succeeded: stage=%s tier=%s model=%s fallback_used=%s latency_ms=%.1f",
            stage.value,
            tier.value if tier else None,
            model,
            attempt > 0,
            (perf_counter() - started) * 1000,
        )
        return response

    assert last_error is not None
    raise last_error
