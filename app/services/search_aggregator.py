"""AI 그라운딩 검색과 구조화 반경 검색을 합쳐 장소 후보를 만드는 집계기."""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime

from app.core.config import Settings
from app.core.exceptions import (
    InvalidPlaceIdError,
    QuotaExceededError,
    SearchUnavailableError,
    UpstreamUnavailableError,
)
from app.core.geo import (
    dedupe_by_id,
    exclude_seen,
    filter_within_radius,
    merge_unique,
    sort_by_distance,
    with_distance,
)
from app.core.logger import get_logger
from app.core.need_mapping import map_need
from app.core.place_ids import extract_coordinates_from_uri, is_valid_place_id
from app.core.timeout_policy import build_timeout_policy
from app.schemas.enums import ApiProvider, ApiType
from app.schemas.place import Location, PlaceReview, Venue
from app.schemas.search import SearchOutcome, SearchRequest
from app.services.grounded_search_service import GroundedSearchProtocol
from app.services.grounding_parser import MAX_GROUNDED_RESULTS, parse_grounded_answer
from app.services.places_service import (
    STATUS_INVALID_REQUEST,
    STATUS_OK,
    STATUS_REQUEST_FAILED,
    PlacesResponse,
    PlacesServiceProtocol,
)
from app.services.quota_guard import QuotaGuard
from app.services.result_cache import ResultCache
from app.services.review_selection import select_reviews
from app.services.review_translator import ReviewTranslator
from app.services.search_prompt import build_search_prompt

logger = get_logger(__name__)

DETAIL_FIELDS: tuple[str, ...] = (
    "place_id",
    "name",
    "formatted_address",
    "rating",
    "price_level",
    "opening_hours",
    "geometry",
    "formatted_phone_number",
    "website",
    "types",
    "editorial_summary",
    "url",
)
REVIEW_DETAIL_FIELDS: tuple[str, ...] = (*DETAIL_FIELDS, "reviews")

RESOLVE_NEARBY_RADIUS_METERS = 100
LOCALITY_TYPE = "locality"

# 도시명 표기 문자로 국가를 추정한다. 위에서부터 먼저 일치하는 항목을 사용한다.
_SCRIPT_COUNTRY_HINTS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"[ўЎ]"), "Беларусь"),
    (re.compile(r"[әғқңөұүһӘҒҚҢӨҰҮҺ]"), "Қазақстан"),
    (re.compile(r"[ђјљњћџЂЈЉЊЋЏ]"), "Србија"),
    (re.compile(r"[іїєґІЇЄҐ]"), "Україна"),
    (re.compile(r"[а-яёА-ЯЁ]"), "Россия"),
)

MapsCall = Callable[[], Awaitable[PlacesResponse]]


def guess_country_by_script(name: str) -> str | None:
    """도시명에 쓰인 문자 집합으로 국가명을 추정합니다."""
    for pattern, country in _SCRIPT_COUNTRY_HINTS:
        if pattern.search(name or ""):
            return country
    return None


def _first_valid_id(places: Sequence[Venue]) -> str | None:
    for place in places:
        if is_valid_place_id(place.place_id):
            return place.place_id
    return None


def _drop_excluded_types(venues: Sequence[Venue], exclude_types: Sequence[str]) -> list[Venue]:
    if not exclude_types:
        return list(venues)
    excluded = set(exclude_types)
    return [venue for venue in venues if not excluded.intersection(venue.types)]


class SearchAggregator:
    """검색 전략 조합기.

    1. 쿼터 확인 후 캐시 조회
    2. AI 그라운딩 검색
    3. 결과가 부족하면 반경 확장 구조화 검색
    4. 병합, 중복 제거, 이미 본 장소 제외 후 캐시에 저장
    """

    def __init__(
        self,
        settings: Settings,
        places_service: PlacesServiceProtocol,
        grounded_search: GroundedSearchProtocol,
        quota_guard: QuotaGuard,
        result_cache: ResultCache,
        translator: ReviewTranslator | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._places = places_service
        self._grounded = grounded_search
        self._quota = quota_guard
        self._cache = result_cache
        self._translator = translator
        self._clock = clock or (lambda: datetime.now(UTC))
        self._timeouts = build_timeout_policy(settings)
        self._max_results = settings.MAX_RESULTS

    async def search(self, request: SearchRequest) -> SearchOutcome:
        """장소 검색을 수행합니다.

        Raises:
            QuotaExceededError: AI 검색 쿼터가 막힌 경우 (캐시 응답 동봉 여부 포함)
            SearchUnavailableError: AI 검색과 대체 검색이 모두 실패한 경우
        """
        if request.check_quota:
            decision = self._quota.can_proceed(request.user_id, ApiProvider.GEMINI)
            if not decision.allowed:
                self._quota.record_call(request.user_id, ApiProvider.GEMINI, ApiType.SEARCH, quota_exceeded=True)
                cached = self._usable_cache(request)
                raise QuotaExceededError(decision.reason, cache_available=cached is not None, cached=cached)

        cached = self._usable_cache(request)
        if cached is not None:
            self._quota.record_call(request.user_id, ApiProvider.GEMINI, ApiType.SEARCH, from_cache=True)
            return cached

        ai_failed = False
        city: str | None = None
        text = ""
        ai_venues: list[Venue] = []
        need = map_need(request.query)
        prompt = build_search_prompt(
            request.query,
            now=self._clock(),
            context=request.context,
            preferences=request.preferences,
            filters=request.filters,
            need=need,
            requested_count=request.required_count if request.required_count and request.required_count > 1 else None,
            context_limit=self._settings.CONTEXT_VENUE_LIMIT,
        )
        self._quota.record_call(request.user_id, ApiProvider.GEMINI, ApiType.SEARCH)
        try:
            answer = await asyncio.wait_for(
                self._grounded.generate(prompt, request.origin),
                timeout=self._timeouts.grounded_search_timeout_seconds,
            )
            city, text, ai_venues = parse_grounded_answer(answer, MAX_GROUNDED_RESULTS)
        except TimeoutError:
            ai_failed = True
            logger.warning("grounded search timed out: user_id=%s", request.user_id)
        except UpstreamUnavailableError as exc:
            ai_failed = True
            logger.warning("grounded search failed: user_id=%s source=%s detail=%s", request.user_id, exc.source, exc.detail)
        except Exception as exc:
            ai_failed = True
            logger.exception("grounded search raised unexpectedly: user_id=%s error=%s", request.user_id, exc)

        ai_venues = [with_distance(venue, request.origin) for venue in ai_venues]
        ai_venues = exclude_seen(dedupe_by_id(ai_venues), request.exclude_ids, request.seen_venues)

        required = request.required_count or 1
        fallback_venues: list[Venue] = []
        fallback_failed = False
        if ai_failed or len(ai_venues) < required:
            keyword = need.suggested_query if need else request.query
            logger.info(
                "radius fallback started: ai_failed=%s ai_count=%d required=%d",
                ai_failed,
                len(ai_venues),
                required,
            )
            fallback_venues, fallback_failed = await self._radius_search(
                keyword,
                request.origin,
                request.user_id,
                request.exclude_ids,
                request.seen_venues,
                request.check_quota,
            )

        if ai_failed and fallback_failed:
            raise SearchUnavailableError("grounded and structured search both failed")

        merged = merge_unique(ai_venues, fallback_venues)
        merged = exclude_seen(merged, request.exclude_ids, request.seen_venues)
        merged = _drop_excluded_types(merged, request.exclude_types)[: self._max_results]

        outcome = SearchOutcome(text=text, venues=merged, extracted_city=city)
        logger.info(
            "search completed: user_id=%s ai=%d fallback=%d final=%d city=%s",
            request.user_id,
            len(ai_venues),
            len(fallback_venues),
            len(merged),
            city,
        )
        if merged:
            self._cache.put_search(request.query, request.origin, outcome)
        return outcome

    def _usable_cache(self, request: SearchRequest) -> SearchOutcome | None:
        cached = self._cache.get_search(request.query, request.origin)
        if cached is None:
            return None
        unseen = exclude_seen(cached.venues, request.exclude_ids, request.seen_venues)
        if not unseen:
            return None
        return cached.model_copy(update={"venues": unseen, "from_cache": True})

    async def _call_maps(
        self,
        api_type: ApiType,
        user_id: int | None,
        call: MapsCall,
        *,
        check_quota: bool = True,
    ) -> PlacesResponse | None:
        """쿼터 확인, 기록, 타임아웃을 적용해 구조화 검색을 호출합니다.

        쿼터가 막히면 None, 타임아웃이면 REQUEST_FAILED 응답을 반환한다.
        """
        if check_quota:
            decision = self._quota.can_proceed(user_id, ApiProvider.GOOGLE_MAPS)
            if not decision.allowed:
                self._quota.record_call(user_id, ApiProvider.GOOGLE_MAPS, api_type, quota_exceeded=True)
                logger.warning("maps call blocked by quota: api_type=%s reason=%s", api_type, decision.reason)
                return None

        self._quota.record_call(user_id, ApiProvider.GOOGLE_MAPS, api_type)
        try:
            return await asyncio.wait_for(call(), timeout=self._timeouts.google_maps_timeout_seconds)
        except TimeoutError:
            logger.warning("maps call timed out: api_type=%s", api_type)
            return PlacesResponse(status=STATUS_REQUEST_FAILED)

    async def _radius_search(
        self,
        keyword: str,
        origin: Location,
        user_id: int | None,
        exclude_ids: Sequence[str],
        seen_venues: Sequence[Venue],
        check_quota: bool,
    ) -> tuple[list[Venue], bool]:
        """기본 반경 nearby 검색 후, 부족하면 반경을 넓혀 text 검색을 누적합니다.

        Returns:
            (거리순 후보, 모든 호출이 실패했는지 여부)
        """
        max_radius = self._settings.MAX_SEARCH_RADIUS_METERS
        threshold = self._settings.MIN_RESULTS_THRESHOLD
        cap = self._max_results
        any_success = False

        def unseen(candidates: list[Venue]) -> list[Venue]:
            within = filter_within_radius(dedupe_by_id(candidates), origin, max_radius)
            return sort_by_distance(exclude_seen(within, exclude_ids, seen_venues))

        base_radius = self._settings.DEFAULT_SEARCH_RADIUS_METERS
        response = await self._call_maps(
            ApiType.NEARBY,
            user_id,
            lambda: self._places.nearby(origin, base_radius, keyword),
            check_quota=check_quota,
        )
        if response is None:
            return [], True

        collected: list[Venue] = []
        if response.ok:
            any_success = True
            collected = [with_distance(venue, origin) for venue in response.places]
            found = unseen(collected)
            if len(found) >= threshold:
                logger.info("nearby search sufficient: radius=%d found=%d", base_radius, len(found))
                return found[:cap], False

        for radius in self._settings.search_radius_steps:
            response = await self._call_maps(
                ApiType.TEXTSEARCH,
                user_id,
                lambda radius=radius: self._places.text_search(keyword, origin, radius),
                check_quota=check_quota,
            )
            if response is None:
                break
            if not response.ok:
                logger.warning("text search failed: radius=%d status=%s", radius, response.status)
                continue

            any_success = True
            collected.extend(with_distance(venue, origin) for venue in response.places)
            collected = dedupe_by_id(collected)
            found = unseen(collected)
            if len(found) >= cap:
                logger.info("text search reached cap: radius=%d found=%d", radius, len(found))
                return found[:cap], False

        found = unseen(collected)
        logger.info("radius fallback finished: found=%d any_success=%s", len(found), any_success)
        return found[:cap], not any_success

    async def resolve_provider_id(
        self,
        name: str,
        address: str | None = None,
        source_uri: str | None = None,
        origin: Location | None = None,
        user_id: int | None = None,
    ) -> str | None:
        """이름/주소/출처 URI로 제공자 장소 ID를 찾습니다.

        이름+주소 검색, URI 좌표 주변 100m 검색, 이름 단독 검색 순서로 시도한다.
        """
        if not name or not name.strip():
            return None

        tiers: list[tuple[str, ApiType, MapsCall]] = []
        if address:
            tiers.append(
                (
                    "name_address",
                    ApiType.TEXTSEARCH,
                    lambda: self._places.text_search(f"{name} {address}", origin),
                )
            )
        coordinates = extract_coordinates_from_uri(source_uri)
        if coordinates is not None:
            point = Location(lat=coordinates[0], lon=coordinates[1])
            tiers.append(
                (
                    "uri_nearby",
                    ApiType.NEARBY,
                    lambda: self._places.nearby(point, RESOLVE_NEARBY_RADIUS_METERS, name),
                )
            )
        tiers.append(("name_only", ApiType.TEXTSEARCH, lambda: self._places.text_search(name, origin)))

        for tier, api_type, call in tiers:
            response = await self._call_maps(api_type, user_id, call)
            if response is None:
                return None
            if not response.ok:
                logger.info("place id resolution tier failed: tier=%s status=%s", tier, response.status)
                continue
            place_id = _first_valid_id(response.places)
            if place_id:
                logger.info("place id resolved: tier=%s name=%s", tier, name)
                return place_id

        logger.info("place id unresolved: name=%s", name)
        return None

    async def get_venue_details(
        self,
        place_id: str,
        include_reviews: bool = False,
        user_id: int | None = None,
    ) -> Venue:
        """장소 상세 정보를 조회합니다.

        Raises:
            InvalidPlaceIdError: 형식 검증 실패
            UpstreamUnavailableError: 조회 실패 또는 쿼터 차단
        """
        if not is_valid_place_id(place_id):
            raise InvalidPlaceIdError(place_id)

        if not include_reviews:
            cached = self._cache.get_venue_details(place_id)
            if cached is not None:
                return cached

        fields = REVIEW_DETAIL_FIELDS if include_reviews else DETAIL_FIELDS
        response = await self._call_maps(
            ApiType.DETAILS,
            user_id,
            lambda: self._places.details(place_id, fields),
        )
        if response is None:
            raise UpstreamUnavailableError("google_maps", "details quota exceeded")

        if response.status == STATUS_INVALID_REQUEST and include_reviews:
            logger.warning("details with reviews rejected, retrying without reviews: place_id=%s", place_id)
            return await self.get_venue_details(place_id, include_reviews=False, user_id=user_id)

        if response.status != STATUS_OK or response.first is None:
            raise UpstreamUnavailableError("google_maps", f"details status {response.status}")

        venue = response.first.model_copy(update={"place_id": place_id})
        if not include_reviews:
            venue = venue.model_copy(update={"reviews": []})
            self._cache.put_venue_details(venue)
            return venue

        selected = select_reviews(venue.reviews)
        translated = await asyncio.gather(*(self._translate_review(review) for review in selected))
        return venue.model_copy(update={"reviews": list(translated)})

    async def _translate_review(self, review: PlaceReview) -> PlaceReview:
        if self._translator is None:
            return review
        text = await self._translator.translate(review.text)
        if text == review.text:
            return review
        return review.model_copy(update={"text": text, "original_text": review.text})

    async def geocode_city(
        self,
        name: str,
        user_id: int | None = None,
        country_hint: str | None = None,
    ) -> Location | None:
        """도시명을 좌표로 변환합니다. 선택 기능이므로 실패 시 None을 반환합니다."""
        if not name or not name.strip():
            return None

        cached = self._cache.get_geocode(name)
        if cached is not None:
            return cached

        decision = self._quota.can_proceed(user_id, ApiProvider.GOOGLE_MAPS)
        if not decision.allowed:
            self._quota.record_call(user_id, ApiProvider.GOOGLE_MAPS, ApiType.GEOCODE, quota_exceeded=True)
            logger.info("geocode skipped by quota: city=%s reason=%s", name, decision.reason)
            return None

        location = await self._geocode_once(name, user_id)
        if location is None:
            country = country_hint or guess_country_by_script(name)
            if country:
                logger.info("geocode retry with country: city=%s country=%s", name, country)
                location = await self._geocode_once(f"{name}, {country}", user_id)

        if location is not None:
            self._cache.put_geocode(name, location)
        return location

    async def _geocode_once(self, address: str, user_id: int | None) -> Location | None:
        response = await self._call_maps(
            ApiType.GEOCODE,
            user_id,
            lambda: self._places.geocode(address),
            check_quota=False,
        )
        if response is None or response.status != STATUS_OK or not response.places:
            return None

        localities = [place for place in response.places if LOCALITY_TYPE in place.types]
        best = (localities or response.places)[0]
        return best.coordinates
