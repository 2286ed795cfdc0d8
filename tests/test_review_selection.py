"""리뷰 선택 테스트."""

from app.schemas.place import PlaceReview
from app.services.review_selection import select_reviews


def _review(rating: float | None, text: str = "текст") -> PlaceReview:
    return PlaceReview(author=f"r{rating}", rating=rating, text=text)


def test_balanced_selection_order() -> None:
    reviews = [
        _review(5),
        _review(1),
        _review(3),
        _review(4),
        _review(2),
        _review(5),
        _review(1),
        _review(3),
    ]

    selected = select_reviews(reviews)

    assert [review.rating for review in selected] == [1, 2, 5, 4, 3]


def test_skips_reviews_without_rating_or_text() -> None:
    reviews = [_review(None), _review(5, text="   "), _review(4)]

    assert [review.rating for review in select_reviews(reviews)] == [4]


def test_fewer_reviews_than_slots() -> None:
    assert [review.rating for review in select_reviews([_review(5)])] == [5]
    assert select_reviews([]) == []
