# app/models/session.py
from datetime import datetime

from sqlalchemy import JSON, BigInteger, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


# 사용자별 대화 세션 (사용자당 1행, 명시적 초기화 외에는 삭제하지 않음)
class ConversationSessionRecord(Base):
    __tablename__ = "conversation_sessions"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)

    # ConversationSession 모델 전체를 JSON으로 보관
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )

    def __repr__(self):
        return f"<ConversationSessionRecord(user_id={self.user_id})>"


# 사용자 장기 선호 (식단, 이동 수단 등)
class UserPreferencesRecord(Base):
    __tablename__ = "user_preferences"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    dietary: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    transport: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), server_default=func.now()
    )
