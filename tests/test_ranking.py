"""장소 랭킹 테스트."""

from app.schemas.enums import SortBy
from app.schemas.place import SearchFilters, Venue
from app.services.ranking import composite_score, rank_and_filter
from tests.mocks.fakes import MOSCOW


def _venue(name: str, **fields) -> Venue:
    return Venue(name=name, **fields)


def test_composite_score_prefers_rating() -> None:
    good = _venue("good", rating=4.8, price_level=2, distance_meters=800)
    near = _venue("near", rating=4.0, price_level=2, distance_meters=100)

    assert composite_score(good) < composite_score(near)


def test_composite_score_uses_defaults_for_missing_fields() -> None:
    assert composite_score(_venue("empty")) == 5 * 2 + 5000 / 100


def test_filters_drop_low_rating_and_expensive_but_keep_unknown() -> None:
    venues = [
        _venue("low", rating=3.5),
        _venue("pricey", rating=4.6, price_level=4),
        _venue("unknown"),
        _venue("ok", rating=4.5, price_level=1),
    ]

    ranked = rank_and_filter(venues, SearchFilters(min_rating=4.0, max_price_level=2))

    assert [venue.name for venue in ranked] == ["ok", "unknown"]


def test_open_now_requires_explicit_true() -> None:
    venues = [
        _venue("open", is_open_now=True),
        _venue("closed", is_open_now=False),
        _venue("unknown"),
    ]

    ranked = rank_and_filter(venues, SearchFilters(open_now=True))

    assert [venue.name for venue in ranked] == ["open"]


def test_sort_by_distance_puts_unknown_last_and_uses_origin() -> None:
    venues = [
        _venue("unknown"),
        _venue("far", distance_meters=900),
        _venue("computed", coordinates=MOSCOW),
    ]

    ranked = rank_and_filter(venues, SearchFilters(sort_by=SortBy.DISTANCE), origin=MOSCOW)

    assert [venue.name for venue in ranked] == ["computed", "far", "unknown"]
    assert ranked[0].distance_meters == 0


def test_sort_by_rating_and_price() -> None:
    venues = [
        _venue("a", rating=4.1, price_level=3),
        _venue("b", rating=4.9, price_level=2),
        _venue("c", rating=None, price_level=None),
    ]

    by_rating = rank_and_filter(venues, SearchFilters(sort_by=SortBy.RATING))
    by_price = rank_and_filter(venues, SearchFilters(sort_by=SortBy.PRICE))

    assert [venue.name for venue in by_rating] == ["b", "a", "c"]
    assert [venue.name for venue in by_price] == ["c", "b", "a"]
