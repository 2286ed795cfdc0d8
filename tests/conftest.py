"""공용 테스트 픽스처."""

from __future__ import annotations

import pytest

from app.core.config import Settings
from app.database import build_engine, build_session_factory, init_db
from tests.mocks.fakes import FakeClock, make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite://")
    init_db(engine)
    yield build_session_factory(engine)
    engine.dispose()
