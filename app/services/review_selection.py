"""리뷰를 평점 기준 감성 버킷으로 나누고 균형 있게 선택합니다."""

from __future__ import annotations

from collections.abc import Iterable

from app.schemas.place import PlaceReview

MAX_NEGATIVE = 2
MAX_POSITIVE = 2
MAX_NEUTRAL = 1
MAX_SELECTED_REVIEWS = MAX_NEGATIVE + MAX_POSITIVE + MAX_NEUTRAL


def select_reviews(reviews: Iterable[PlaceReview]) -> list[PlaceReview]:
    """부정(≤2) 2개, 긍정(≥4) 2개, 중립(=3) 1개를 골라 최대 5개를 반환합니다.

    평점이 없거나 본문이 비어 있는 리뷰는 제외한다.
    반환 순서는 부정 → 긍정 → 중립.
    """
    negative: list[PlaceReview] = []
    neutral: list[PlaceReview] = []
    positive: list[PlaceReview] = []

    for review in reviews:
        if review.rating is None or not review.text.strip():
            continue
        if review.rating <= 2:
            negative.append(review)
        elif review.rating >= 4:
            positive.append(review)
        elif review.rating == 3:
            neutral.append(review)

    selected = negative[:MAX_NEGATIVE] + positive[:MAX_POSITIVE] + neutral[:MAX_NEUTRAL]
    return selected[:MAX_SELECTED_REVIEWS]
