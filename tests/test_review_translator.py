"""리뷰 번역기 테스트."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

from app.core.llm_router import Stage
from app.services.review_translator import ReviewTranslator
from tests.mocks.fakes import make_settings


def test_returns_original_without_llm_key() -> None:
    translator = ReviewTranslator(make_settings())

    with patch("app.services.review_translator.ainvoke", new=AsyncMock()) as mocked:
        result = asyncio.run(translator.translate("Great coffee"))

    assert result == "Great coffee"
    mocked.assert_not_awaited()


def test_translates_with_review_stage() -> None:
    translator = ReviewTranslator(make_settings(OPENAI_API_KEY="test-key"))
    mocked = AsyncMock(return_value=SimpleNamespace(content="  Отличный кофе  "))

    with patch("app.services.review_translator.ainvoke", new=mocked):
        result = asyncio.run(translator.translate("Great coffee"))

    assert result == "Отличный кофе"
    assert mocked.await_args.args[0] == Stage.REVIEW_TRANSLATION


def test_keeps_original_on_failure() -> None:
    translator = ReviewTranslator(make_settings(OPENAI_API_KEY="test-key"))

    with patch("app.services.review_translator.ainvoke", new=AsyncMock(side_effect=RuntimeError("down"))):
        result = asyncio.run(translator.translate("Great coffee"))

    assert result == "Great coffee"


def test_blank_text_is_not_sent() -> None:
    translator = ReviewTranslator(make_settings(OPENAI_API_KEY="test-key"))

    with patch("app.services.review_translator.ainvoke", new=AsyncMock()) as mocked:
        assert asyncio.run(translator.translate("   ")) == "   "

    mocked.assert_not_awaited()
