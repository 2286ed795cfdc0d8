from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import get_settings
from app.models.base import Base


def build_engine(database_url: str) -> Engine:
    """URL로 `SQLAlchemy` 엔진을 생성한다.

    SQLite 메모리 DB는 커넥션 간에 공유되도록 `StaticPool`을 사용한다.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(database_url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(database_url, connect_args={"check_same_thread": False})


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """엔진에 바인딩된 세션 팩토리를 생성한다."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """등록된 모든 모델의 테이블을 생성한다."""
    import app.models.cache  # noqa: F401
    import app.models.session  # noqa: F401
    import app.models.usage  # noqa: F401

    Base.metadata.create_all(bind=engine)


@lru_cache
def get_engine() -> Engine:
    """`SQLAlchemy` 엔진을 반환한다. 최초 호출 시에만 생성되고 이후 캐싱된다."""
    return build_engine(get_settings().DATABASE_URL)


@lru_cache
def get_session_local() -> sessionmaker[Session]:
    """`SessionLocal` 팩토리를 반환한다."""
    return build_session_factory(get_engine())
