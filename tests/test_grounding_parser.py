"""그라운딩 응답 파싱 테스트."""

from app.core.place_ids import extract_coordinates_from_uri, extract_place_id, is_valid_place_id
from app.schemas.place import GroundedAnswer, GroundingReference
from app.services.grounding_parser import parse_grounded_answer, references_to_venues, split_city_marker
from tests.mocks.fakes import place_id


class TestPlaceIds:
    """장소 ID 검증/추출 테스트."""

    def test_is_valid_place_id(self) -> None:
        assert is_valid_place_id(place_id("a"))
        assert not is_valid_place_id("short")
        assert not is_valid_place_id("maps_" + "x" * 30)
        assert not is_valid_place_id("ChIJ has spaces in it!!")
        assert not is_valid_place_id(None)

    def test_extract_prefers_direct_id(self) -> None:
        direct = place_id("direct")
        uri = f"https://maps.google.com/?q=x&query_place_id={place_id('uri')}"

        assert extract_place_id(f"places/{direct}", uri) == direct

    def test_extract_from_uri_query(self) -> None:
        uri = f"https://www.google.com/maps/search/?api=1&query=cafe&query_place_id={place_id('uri')}"

        assert extract_place_id(None, uri) == place_id("uri")

    def test_extract_from_numeric_cid(self) -> None:
        uri = "https://maps.google.com/?cid=12345678901234567890"

        assert extract_place_id("bad", uri) == "12345678901234567890"

    def test_extract_returns_none_when_nothing_valid(self) -> None:
        assert extract_place_id(None, "https://maps.google.com/?cid=123") is None
        assert extract_place_id(None, None) is None

    def test_extract_coordinates_from_uri(self) -> None:
        assert extract_coordinates_from_uri("https://www.google.com/maps/place/X/@55.75,37.61,17z") == (55.75, 37.61)
        assert extract_coordinates_from_uri("https://maps.google.com/?q=cafe") is None


class TestCityMarker:
    """도시 표식 분리 테스트."""

    def test_split_city_marker(self) -> None:
        city, body = split_city_marker("CITY: Белград\nВот несколько кафе.")

        assert city == "Белград"
        assert body == "Вот несколько кафе."

    def test_none_marker(self) -> None:
        city, body = split_city_marker("\n**CITY: NONE**\nОтвет")

        assert city is None
        assert body == "Ответ"

    def test_text_without_marker_is_kept(self) -> None:
        assert split_city_marker("Просто ответ") == (None, "Просто ответ")


class TestReferences:
    """참조 → 장소 변환 테스트."""

    def test_references_become_venues(self) -> None:
        answer = GroundedAnswer(
            text="CITY: NONE\nНашел пару мест.",
            references=[
                GroundingReference(title="Кофейня", place_id=place_id("a"), address="ул. Тверская, 1"),
                GroundingReference(title="Дубль", place_id=place_id("a")),
                GroundingReference(title="Без ID", uri="https://www.google.com/maps/place/X/@55.75,37.61,17z"),
                GroundingReference(title="  "),
            ],
        )

        city, text, venues = parse_grounded_answer(answer)

        assert city is None
        assert text == "Нашел пару мест."
        assert [venue.name for venue in venues] == ["Кофейня", "Без ID"]
        assert venues[0].place_id == place_id("a")
        assert venues[1].place_id is None
        assert venues[1].coordinates is not None
        assert venues[1].coordinates.lat == 55.75

    def test_limit_is_applied(self) -> None:
        answer = GroundedAnswer(
            references=[GroundingReference(title=f"Место {index}", place_id=place_id(str(index))) for index in range(8)]
        )

        assert len(references_to_venues(answer, limit=5)) == 5
