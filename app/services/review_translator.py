"""리뷰 본문 번역기."""

from __future__ import annotations

import asyncio

from langchain_core.prompts import ChatPromptTemplate

from app.core.config import Settings
from app.core.llm_router import Stage, ainvoke, is_llm_configured
from app.core.logger import get_logger
from app.core.timeout_policy import build_timeout_policy

logger = get_logger(__name__)

TRANSLATION_SYSTEM_PROMPT = """\
Переведи отзыв о заведении на язык: {target_language}.
Сохрани смысл и тон. Верни только перевод без пояснений.
Если текст уже на нужном языке, верни его без изменений.
"""


class ReviewTranslator:
    """LLM으로 리뷰를 번역합니다. 실패하면 원문을 그대로 반환합니다."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._target_language = settings.REVIEW_TARGET_LANGUAGE
        self._timeout_seconds = build_timeout_policy(settings).llm_timeout_seconds
        self._prompt = ChatPromptTemplate.from_messages(
            [("system", TRANSLATION_SYSTEM_PROMPT), ("human", "{text}")]
        )

    async def translate(self, text: str) -> str:
        if not text.strip() or not is_llm_configured(self._settings):
            return text

        messages = self._prompt.format_messages(target_language=self._target_language, text=text)
        try:
            response = await asyncio.wait_for(
                ainvoke(Stage.REVIEW_TRANSLATION, messages, settings=self._settings),
                timeout=self._timeout_seconds,
            )
        except TimeoutError:
            logger.warning("Review translation timed out; keeping original text")
            return text
        except Exception as exc:
            logger.warning("Review translation failed; keeping original text: %s", exc)
            return text

        translated = str(getattr(response, "content", "") or "").strip()
        return translated or text
