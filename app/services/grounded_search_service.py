"""Google Maps 그라운딩을 사용하는 AI 검색 서비스."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import requests

from app.core.config import Settings
from app.core.exceptions import UpstreamUnavailableError
from app.core.logger import get_logger
from app.core.timeout_policy import build_timeout_policy, to_requests_timeout
from app.schemas.place import GroundedAnswer, GroundingReference, Location

logger = get_logger(__name__)


class GroundedSearchProtocol(ABC):
    """AI 그라운딩 검색 인터페이스."""

    @abstractmethod
    async def generate(self, prompt: str, location_bias: Location | None) -> GroundedAnswer:
        """프롬프트에 대한 응답과 그라운딩 참조를 반환합니다.

        Raises:
            UpstreamUnavailableError: 호출 실패 또는 응답 파싱 실패
        """
        raise NotImplementedError


class GeminiGroundedSearchService(GroundedSearchProtocol):
    """Gemini generateContent + googleMaps 도구 기반 구현."""

    _BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(self, api_key: str, model_name: str, timeout_seconds: int = 30) -> None:
        self._api_key = api_key
        self._model_name = model_name
        self._timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> GeminiGroundedSearchService:
        if not settings.GEMINI_API_KEY:
            logger.error("GEMINI_API_KEY is not configured.")
        return cls(
            api_key=settings.GEMINI_API_KEY,
            model_name=settings.GEMINI_MODEL_NAME,
            timeout_seconds=build_timeout_policy(settings).grounded_search_timeout_seconds,
        )

    async def generate(self, prompt: str, location_bias: Location | None) -> GroundedAnswer:
        if not self._api_key:
            raise UpstreamUnavailableError("gemini", "api key missing")

        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "tools": [{"googleMaps": {}}],
        }
        if location_bias is not None:
            payload["toolConfig"] = {
                "retrievalConfig": {
                    "latLng": {"latitude": location_bias.lat, "longitude": location_bias.lon},
                }
            }

        url = f"{self._BASE_URL}/{self._model_name}:generateContent"
        request_timeout = to_requests_timeout(self._timeout_seconds)

        def _send() -> requests.Response:
            with requests.Session() as session:
                return session.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json", "x-goog-api-key": self._api_key},
                    timeout=request_timeout,
                )

        try:
            response = await asyncio.to_thread(_send)
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            logger.error("Gemini API error: status=%s", status_code)
            raise UpstreamUnavailableError("gemini", f"http {status_code}") from exc
        except requests.RequestException as exc:
            logger.error("Gemini API request failed: %s", exc)
            raise UpstreamUnavailableError("gemini", "request failed") from exc
        except ValueError as exc:
            logger.error("Gemini API response parse failed: %s", exc)
            raise UpstreamUnavailableError("gemini", "invalid json") from exc

        return self._parse_response(data)

    def _parse_response(self, data: dict[str, Any]) -> GroundedAnswer:
        candidates = data.get("candidates") or []
        if not candidates:
            raise UpstreamUnavailableError("gemini", "no candidates")

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))

        references: list[GroundingReference] = []
        chunks = (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []
        for chunk in chunks:
            maps = chunk.get("maps") if isinstance(chunk, dict) else None
            if not maps or not isinstance(maps, dict):
                continue
            references.append(
                GroundingReference(
                    title=maps.get("title") or "",
                    uri=maps.get("uri"),
                    place_id=maps.get("placeId"),
                    address=maps.get("address") or maps.get("text"),
                )
            )

        logger.info("Gemini grounded search completed: text_length=%d references=%d", len(text), len(references))
        return GroundedAnswer(text=text, references=references)
