"""애플리케이션 전역 설정을 관리하는 모듈."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """환경 변수 기반 설정 모델.

    생성 이후에는 변경할 수 없으며, 각 컴포넌트 생성자에 명시적으로 전달된다.
    """

    OPENAI_API_KEY: str = ""
    GEMINI_API_KEY: str = ""
    GOOGLE_MAPS_API_KEY: str = ""
    SERVICE_SECRET: str = ""
    DATABASE_URL: str = "sqlite:///./spotfinder.db"

    LLM_MODEL_NAME: str = "gpt-4o-mini"
    ENABLE_STAGE_LLM_ROUTING: bool = False
    LLM_MODEL_SPEED: str = ""
    LLM_MODEL_COST: str = ""
    GEMINI_MODEL_NAME: str = "gemini-2.5-flash"

    REQUEST_TIMEOUT_SECONDS: int = 60
    LLM_TIMEOUT_SECONDS: int = 20
    GROUNDED_SEARCH_TIMEOUT_SECONDS: int = 30
    EXTERNAL_API_TIMEOUT_SECONDS: int = 15
    GOOGLE_MAPS_TIMEOUT_SECONDS: int = 10
    ENRICHMENT_TIMEOUT_SECONDS: int = 12

    GOOGLE_MAPS_LANGUAGE_CODE: str = "ru"
    REVIEW_TARGET_LANGUAGE: str = "русский"

    LOCATION_TTL_MINUTES: int = 20
    SEARCH_CACHE_TTL_HOURS: int = 4
    DETAILS_CACHE_TTL_HOURS: int = 24
    GEOCODE_CACHE_TTL_DAYS: int = 3650

    DEFAULT_SEARCH_RADIUS_METERS: int = 1000
    MAX_SEARCH_RADIUS_METERS: int = 5000
    SEARCH_RADIUS_STEPS: str = "1000,2000,3000,5000"
    MIN_RESULTS_THRESHOLD: int = 3
    MAX_RESULTS: int = 5
    RESULT_WINDOW_SIZE: int = 20
    DEFAULT_MULTI_PLACE_COUNT: int = 3
    CONTEXT_VENUE_LIMIT: int = 5

    GEMINI_DAILY_GLOBAL_LIMIT: int = 1500
    GEMINI_DAILY_USER_LIMIT: int = 50
    GOOGLE_MAPS_DAILY_GLOBAL_LIMIT: int = 10000
    GOOGLE_MAPS_DAILY_USER_LIMIT: int = 300

    DOCS_MODE: str = "disabled"
    EXPOSE_INTERNAL_ERRORS: bool = False
    CORS_ALLOW_ORIGINS: str = ""
    CORS_ALLOW_METHODS: str = "GET,POST,OPTIONS"
    CORS_ALLOW_HEADERS: str = "Content-Type,x-service-secret"
    SECURITY_HEADERS_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @property
    def search_radius_steps(self) -> tuple[int, ...]:
        """반경 확장 단계(미터)를 오름차순 튜플로 반환합니다."""
        steps: set[int] = set()
        for item in self.SEARCH_RADIUS_STEPS.split(","):
            try:
                step = int(item.strip())
            except ValueError:
                continue
            if 0 < step <= self.MAX_SEARCH_RADIUS_METERS:
                steps.add(step)
        return tuple(sorted(steps)) or (self.MAX_SEARCH_RADIUS_METERS,)

    @field_validator("MAX_RESULTS", mode="before")
    @classmethod
    def _clamp_max_results(cls, value: object) -> int:
        try:
            numeric = int(value) if value is not None else 5
        except (TypeError, ValueError):
            numeric = 5
        return min(10, max(1, numeric))

    @field_validator("DEFAULT_MULTI_PLACE_COUNT", mode="before")
    @classmethod
    def _clamp_default_multi_place_count(cls, value: object) -> int:
        try:
            numeric = int(value) if value is not None else 3
        except (TypeError, ValueError):
            numeric = 3
        return min(5, max(2, numeric))

    @field_validator("LOCATION_TTL_MINUTES", "MIN_RESULTS_THRESHOLD", mode="before")
    @classmethod
    def _ensure_positive(cls, value: object) -> int:
        try:
            numeric = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            numeric = 1
        return max(1, numeric)


@lru_cache
def get_settings() -> Settings:
    """Settings 인스턴스를 반환한다. 최초 호출 시에만 생성되고 이후 캐싱된다."""
    return Settings()
