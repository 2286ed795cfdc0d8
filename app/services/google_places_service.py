"""Google Maps Platform 웹 서비스(Places/Geocoding) 구현."""

from __future__ import annotations

import asyncio
from typing import Any

import requests

from app.core.config import Settings
from app.core.logger import get_logger
from app.core.timeout_policy import build_timeout_policy, to_requests_timeout
from app.schemas.place import Location, PlaceReview, Venue
from app.services.places_service import STATUS_REQUEST_FAILED, PlacesResponse, PlacesServiceProtocol

logger = get_logger(__name__)


class GooglePlacesError(RuntimeError):
    """Google Maps 호출 설정 실패 시 발생하는 예외."""


class GooglePlacesService(PlacesServiceProtocol):
    """Google Maps 웹 서비스 기반 Places 서비스."""

    _PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"
    _GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(self, api_key: str, timeout_seconds: int = 10, language_code: str = "ru") -> None:
        if not api_key:
            raise GooglePlacesError("GOOGLE_MAPS_API_KEY is not configured.")
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._language_code = language_code.strip() if language_code else ""

    @classmethod
    def from_settings(cls, settings: Settings) -> GooglePlacesService:
        """애플리케이션 설정으로 서비스 인스턴스를 생성합니다."""
        timeout_policy = build_timeout_policy(settings)
        if not settings.GOOGLE_MAPS_API_KEY:
            logger.error("GOOGLE_MAPS_API_KEY is not configured.")
        return cls(
            api_key=settings.GOOGLE_MAPS_API_KEY,
            timeout_seconds=timeout_policy.google_maps_timeout_seconds,
            language_code=settings.GOOGLE_MAPS_LANGUAGE_CODE,
        )

    async def nearby(self, location: Location, radius_meters: int, keyword: str) -> PlacesResponse:
        params = {
            "location": f"{location.lat},{location.lon}",
            "radius": int(radius_meters),
            "keyword": keyword,
        }
        return await self._search(f"{self._PLACES_BASE_URL}/nearbysearch/json", params, "nearby")

    async def text_search(
        self,
        query: str,
        location: Location | None = None,
        radius_meters: int | None = None,
    ) -> PlacesResponse:
        if not query.strip():
            return PlacesResponse(status="ZERO_RESULTS")
        params: dict[str, Any] = {"query": query}
        if location is not None:
            params["location"] = f"{location.lat},{location.lon}"
            if radius_meters:
                params["radius"] = int(radius_meters)
        return await self._search(f"{self._PLACES_BASE_URL}/textsearch/json", params, "textsearch")

    async def details(self, place_id: str, fields: tuple[str, ...]) -> PlacesResponse:
        params = {"place_id": place_id, "fields": ",".join(fields)}
        data = await self._request(f"{self._PLACES_BASE_URL}/details/json", params)
        if data is None:
            return PlacesResponse(status=STATUS_REQUEST_FAILED)

        status = str(data.get("status") or STATUS_REQUEST_FAILED)
        place = self._map_place(data.get("result") or {})
        if status != "OK":
            logger.warning("Google Places details status=%s place_id=%s", status, place_id)
        return PlacesResponse(status=status, places=[place] if place else [])

    async def geocode(self, address: str) -> PlacesResponse:
        data = await self._request(self._GEOCODE_URL, {"address": address})
        if data is None:
            return PlacesResponse(status=STATUS_REQUEST_FAILED)

        status = str(data.get("status") or STATUS_REQUEST_FAILED)
        results: list[Venue] = []
        for raw in data.get("results") or []:
            location = (raw.get("geometry") or {}).get("location") or {}
            if location.get("lat") is None or location.get("lng") is None:
                continue
            results.append(
                Venue(
                    place_id=raw.get("place_id"),
                    name=raw.get("formatted_address") or address,
                    address=raw.get("formatted_address"),
                    coordinates=Location(lat=location["lat"], lon=location["lng"]),
                    types=raw.get("types") or [],
                )
            )
        logger.info("Google geocode completed: status=%s result_count=%d", status, len(results))
        return PlacesResponse(status=status, places=results)

    async def _search(self, url: str, params: dict[str, Any], kind: str) -> PlacesResponse:
        data = await self._request(url, params)
        if data is None:
            return PlacesResponse(status=STATUS_REQUEST_FAILED)

        status = str(data.get("status") or STATUS_REQUEST_FAILED)
        places = [place for place in (self._map_place(item) for item in data.get("results") or []) if place]
        logger.info(
            "Google Places %s completed: status=%s candidate_count=%d",
            kind,
            status,
            len(places),
        )
        return PlacesResponse(status=status, places=places)

    async def _request(self, url: str, params: dict[str, Any]) -> dict[str, Any] | None:
        query = dict(params)
        query["key"] = self._api_key
        if self._language_code:
            query["language"] = self._language_code
        request_timeout = to_requests_timeout(self._timeout_seconds)

        def _send() -> requests.Response:
            with requests.Session() as session:
                return session.get(url, params=query, timeout=request_timeout)

        try:
            response = await asyncio.to_thread(_send)
            response.raise_for_status()
            return response.json()
        except requests.HTTPError as exc:
            response = exc.response
            status_code = response.status_code if response is not None else None
            body = (response.text or "")[:200] if response is not None else ""
            logger.error("Google Maps API error: status=%s body=%s", status_code, body)
            return None
        except requests.RequestException as exc:
            logger.error("Google Maps API request failed: %s", exc)
            return None
        except ValueError as exc:
            logger.error("Google Maps API response parse failed: %s", exc)
            return None

    def _map_place(self, raw: dict[str, Any]) -> Venue | None:
        name = raw.get("name")
        if not name:
            return None

        location = (raw.get("geometry") or {}).get("location") or {}
        latitude = location.get("lat")
        longitude = location.get("lng")
        coordinates = (
            Location(lat=latitude, lon=longitude) if latitude is not None and longitude is not None else None
        )
        opening_hours = raw.get("opening_hours") or raw.get("current_opening_hours") or {}
        summary = raw.get("editorial_summary") or {}

        return Venue(
            place_id=raw.get("place_id"),
            name=name,
            address=raw.get("formatted_address") or raw.get("vicinity"),
            rating=raw.get("rating"),
            price_level=raw.get("price_level"),
            is_open_now=opening_hours.get("open_now"),
            coordinates=coordinates,
            source_uri=raw.get("url"),
            types=raw.get("types") or [],
            phone_number=raw.get("formatted_phone_number") or raw.get("international_phone_number"),
            website=raw.get("website"),
            editorial_summary=summary.get("overview"),
            reviews=[
                PlaceReview(
                    author=item.get("author_name"),
                    rating=item.get("rating"),
                    text=item.get("text") or "",
                    relative_time=item.get("relative_time_description"),
                )
                for item in raw.get("reviews") or []
            ],
        )
