"""검색 이력 및 사용자 행동 기록. 기록 실패는 응답에 영향을 주지 않는다."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.logger import get_logger
from app.models.usage import SearchHistoryRecord, UserActionRecord
from app.schemas.enums import FailurePolicy
from app.schemas.place import Location

logger = get_logger(__name__)


class ActivityLog:
    FAILURE_POLICY = FailurePolicy.SWALLOW

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def record_search(self, user_id: int, query: str, origin: Location | None, result_count: int) -> None:
        self._add(
            SearchHistoryRecord(
                user_id=user_id,
                query=query,
                latitude=origin.lat if origin else None,
                longitude=origin.lon if origin else None,
                result_count=result_count,
            ),
            kind="search_history",
        )

    def track_action(self, user_id: int, action: str, place_id: str | None = None) -> None:
        self._add(UserActionRecord(user_id=user_id, action=action, place_id=place_id), kind="user_action")

    def _add(self, record: object, *, kind: str) -> None:
        try:
            with self._session_factory() as db:
                db.add(record)
                db.commit()
        except SQLAlchemyError as exc:
            logger.error("activity log write failed: kind=%s error=%s", kind, exc)
