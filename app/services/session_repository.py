"""대화 세션 저장소."""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy.orm import Session, sessionmaker

from app.core.logger import get_logger
from app.models.session import ConversationSessionRecord, UserPreferencesRecord
from app.schemas.dialogue import ConversationSession
from app.schemas.enums import FailurePolicy
from app.schemas.place import UserPreferences

logger = get_logger(__name__)


class SessionRepository(ABC):
    """사용자별 세션 레코드 저장소 인터페이스.

    저장소 오류는 호출자에게 그대로 전파된다.
    """

    FAILURE_POLICY = FailurePolicy.PROPAGATE

    @abstractmethod
    def get(self, user_id: int) -> ConversationSession | None:
        raise NotImplementedError

    @abstractmethod
    def replace(self, session: ConversationSession) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, user_id: int) -> None:
        raise NotImplementedError

    def get_preferences(self, user_id: int) -> UserPreferences | None:
        return None


class SqlSessionRepository(SessionRepository):
    """SQLAlchemy 테이블에 세션 모델을 JSON으로 저장합니다."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, user_id: int) -> ConversationSession | None:
        with self._session_factory() as db:
            record = db.get(ConversationSessionRecord, user_id)
            if record is None:
                return None
            payload = dict(record.payload or {})
        payload["user_id"] = user_id
        return ConversationSession.model_validate(payload)

    def replace(self, session: ConversationSession) -> None:
        payload = session.model_dump(mode="json")
        with self._session_factory() as db:
            record = db.get(ConversationSessionRecord, session.user_id)
            if record is None:
                db.add(ConversationSessionRecord(user_id=session.user_id, payload=payload))
            else:
                record.payload = payload
            db.commit()

    def delete(self, user_id: int) -> None:
        with self._session_factory() as db:
            record = db.get(ConversationSessionRecord, user_id)
            if record is not None:
                db.delete(record)
                db.commit()
                logger.info("session deleted: user_id=%s", user_id)

    def get_preferences(self, user_id: int) -> UserPreferences | None:
        with self._session_factory() as db:
            record = db.get(UserPreferencesRecord, user_id)
            if record is None:
                return None
            preferences = UserPreferences(
                dietary=list(record.dietary or []),
                transport=record.transport,
                notes=record.notes,
            )
        return None if preferences.is_empty else preferences
