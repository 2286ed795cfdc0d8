"""애플리케이션 진입점 최소 동작 테스트."""

from __future__ import annotations

import importlib

from fastapi.testclient import TestClient

from app.api.dependencies import get_dialogue_orchestrator, get_quota_guard
from app.core.config import get_settings
from app.schemas.dialogue import ResponseDescriptor
from app.services.quota_guard import QuotaGuard
from tests.mocks.fakes import make_settings

SECRET_HEADER = {"x-service-secret": "test-service-secret"}


def _set_required_env(monkeypatch, **overrides: str) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("GEMINI_API_KEY", "test-gemini-key")
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "test-maps-key")
    monkeypatch.setenv("SERVICE_SECRET", "test-service-secret")
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("DOCS_MODE", "disabled")
    for key, value in overrides.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()


def _load_main_module():
    import app.main as main_module

    return importlib.reload(main_module)


class StubOrchestrator:
    """요청 전달만 확인하는 오케스트레이터."""

    def __init__(self) -> None:
        self.messages: list[tuple[int, str]] = []

    async def handle_message(self, user_id: int, text: str) -> ResponseDescriptor:
        self.messages.append((user_id, text))
        return ResponseDescriptor(text=f"echo: {text}")

    async def handle_location(self, user_id: int, latitude: float, longitude: float) -> ResponseDescriptor:
        return ResponseDescriptor(text=f"{latitude},{longitude}")

    async def handle_action(self, user_id: int, action: str) -> ResponseDescriptor:
        return ResponseDescriptor(text=action)

    async def reset(self, user_id: int) -> ResponseDescriptor:
        return ResponseDescriptor(text="reset", request_location=True)


def test_health_check_endpoint(monkeypatch) -> None:
    _set_required_env(monkeypatch)
    main_module = _load_main_module()

    client = TestClient(main_module.app)
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "message": "SpotFinder AI Server is running"}


def test_docs_disabled_by_default(monkeypatch) -> None:
    _set_required_env(monkeypatch)
    main_module = _load_main_module()

    client = TestClient(main_module.app)

    assert client.get("/docs").status_code == 404
    assert client.get("/redoc").status_code == 404
    assert client.get("/openapi.json").status_code == 404


def test_docs_secret_mode_requires_service_secret(monkeypatch) -> None:
    _set_required_env(monkeypatch, DOCS_MODE="secret")
    main_module = _load_main_module()

    client = TestClient(main_module.app)

    unauthorized = client.get("/docs")
    assert unauthorized.status_code == 401

    authorized = client.get("/docs", headers=SECRET_HEADER)
    assert authorized.status_code == 200


def test_public_docs_include_dialogue_routes(monkeypatch) -> None:
    _set_required_env(monkeypatch, DOCS_MODE="public")
    main_module = _load_main_module()

    paths = main_module.app.openapi()["paths"]

    assert "/api/v1/dialogue/message" in paths
    assert "/api/v1/dialogue/stats" in paths


def test_security_headers_are_attached(monkeypatch) -> None:
    _set_required_env(monkeypatch)
    main_module = _load_main_module()

    client = TestClient(main_module.app)
    response = client.get("/")

    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "DENY"
    assert response.headers["referrer-policy"] == "no-referrer"
    assert response.headers["cache-control"] == "no-store"


def test_cors_allowlist_from_env(monkeypatch) -> None:
    _set_required_env(
        monkeypatch,
        CORS_ALLOW_ORIGINS="https://example.com",
        CORS_ALLOW_METHODS="GET,POST,OPTIONS",
        CORS_ALLOW_HEADERS="Content-Type,x-service-secret",
    )
    main_module = _load_main_module()

    client = TestClient(main_module.app)
    response = client.get("/", headers={"Origin": "https://example.com"})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://example.com"
    assert "access-control-allow-credentials" not in response.headers


class TestDialogueEndpoints:
    """대화 API 라우팅 테스트."""

    def test_requires_service_secret(self, monkeypatch) -> None:
        _set_required_env(monkeypatch)
        main_module = _load_main_module()
        main_module.app.dependency_overrides[get_dialogue_orchestrator] = StubOrchestrator

        client = TestClient(main_module.app)
        response = client.post("/api/v1/dialogue/message", json={"user_id": 1, "text": "кофе"})

        assert response.status_code == 401

    def test_message_is_forwarded(self, monkeypatch) -> None:
        _set_required_env(monkeypatch)
        main_module = _load_main_module()
        stub = StubOrchestrator()
        main_module.app.dependency_overrides[get_dialogue_orchestrator] = lambda: stub

        client = TestClient(main_module.app)
        response = client.post(
            "/api/v1/dialogue/message",
            json={"user_id": 7, "text": "кофе"},
            headers=SECRET_HEADER,
        )

        assert response.status_code == 200
        assert response.json() == {"text": "echo: кофе", "buttons": [], "request_location": False}
        assert stub.messages == [(7, "кофе")]

    def test_invalid_location_is_rejected(self, monkeypatch) -> None:
        _set_required_env(monkeypatch)
        main_module = _load_main_module()
        main_module.app.dependency_overrides[get_dialogue_orchestrator] = StubOrchestrator

        client = TestClient(main_module.app)
        response = client.post(
            "/api/v1/dialogue/location",
            json={"user_id": 7, "latitude": 91, "longitude": 0},
            headers=SECRET_HEADER,
        )

        assert response.status_code == 422

    def test_reset(self, monkeypatch) -> None:
        _set_required_env(monkeypatch)
        main_module = _load_main_module()
        main_module.app.dependency_overrides[get_dialogue_orchestrator] = StubOrchestrator

        client = TestClient(main_module.app)
        response = client.post("/api/v1/dialogue/reset", json={"user_id": 7}, headers=SECRET_HEADER)

        assert response.status_code == 200
        assert response.json()["request_location"] is True

    def test_stats(self, monkeypatch, session_factory) -> None:
        _set_required_env(monkeypatch)
        main_module = _load_main_module()
        quota_guard = QuotaGuard(session_factory, make_settings())
        main_module.app.dependency_overrides[get_quota_guard] = lambda: quota_guard

        client = TestClient(main_module.app)
        response = client.get("/api/v1/dialogue/stats", headers=SECRET_HEADER)

        assert response.status_code == 200
        assert response.json() == {
            "total_calls": 0,
            "cached_calls": 0,
            "total_cost_usd": 0.0,
            "calls_by_provider": {},
        }
