# market/logic/ratings.py
# 판매자 리뷰 CRUD + 평균 평점 (조회 시점 재계산)
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from market.config import project_rules as R
from market.config.time_policy import to_db
from market.errors import (
    DuplicateReviewError,
    ForbiddenError,
    NotFoundError,
    SelfReviewForbiddenError,
    ValidationError,
)
from market.models import Item, Review, User

logger = logging.getLogger(__name__)


def _check_rating(rating: int) -> None:
    if rating is None or not (R.RATING_MIN <= int(rating) <= R.RATING_MAX):
        raise ValidationError(f"Rating must be between {R.RATING_MIN} and {R.RATING_MAX}")


def _check_comment(comment: str) -> str:
    text = (comment or "").strip()
    if not text:
        raise ValidationError("Comment is required")
    if len(text) > R.REVIEW_COMMENT_MAX:
        raise ValidationError(f"Comment must be at most {R.REVIEW_COMMENT_MAX} characters")
    return text


def average_of(ratings: Iterable[int]) -> float:
    """산술평균을 소수 첫째 자리에서 반올림(half-up). 리뷰가 없으면 0.0"""
    values = [int(r) for r in ratings]
    if not values:
        return 0.0
    mean = Decimal(sum(values)) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def seller_rating(db: Session, seller_id: int) -> Tuple[int, float]:
    """(total_reviews, average_rating)"""
    ratings = [r for (r,) in db.query(Review.rating).filter(Review.seller_id == seller_id).all()]
    return len(ratings), average_of(ratings)


def _with_relations(q):
    return q.options(joinedload(Review.reviewer), joinedload(Review.item))


def add_review(
    db: Session,
    *,
    reviewer_id: int,
    item_id: int,
    rating: int,
    comment: str,
) -> Review:
    item = db.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item not found")
    if item.seller_id == reviewer_id:
        raise SelfReviewForbiddenError()

    _check_rating(rating)
    text = _check_comment(comment)

    exists = (
        db.query(Review.id)
        .filter(Review.reviewer_id == reviewer_id, Review.item_id == item_id)
        .first()
    )
    if exists:
        raise DuplicateReviewError()

    review = Review(
        seller_id=item.seller_id,
        reviewer_id=reviewer_id,
        item_id=item_id,
        rating=int(rating),
        comment=text,
    )
    db.add(review)
    try:
        db.commit()
    except IntegrityError:
        # 동시에 들어온 같은 (reviewer, item) 리뷰는 유니크 제약이 막는다
        db.rollback()
        raise DuplicateReviewError()

    db.refresh(review)
    logger.info("[review] created id=%s seller=%s reviewer=%s", review.id, review.seller_id, reviewer_id)
    return review


def _require_own_review(db: Session, review_id: int, user_id: int) -> Review:
    review = db.get(Review, review_id)
    if review is None:
        raise NotFoundError("Review not found")
    if review.reviewer_id != user_id:
        raise ForbiddenError("Not authorized")
    return review


def update_review(
    db: Session,
    *,
    review_id: int,
    reviewer_id: int,
    rating: Optional[int] = None,
    comment: Optional[str] = None,
) -> Review:
    review = _require_own_review(db, review_id, reviewer_id)
    if rating is not None:
        _check_rating(rating)
        review.rating = int(rating)
    if comment is not None:
        review.comment = _check_comment(comment)
    review.updated_at = to_db()

    db.add(review)
    db.commit()
    db.refresh(review)
    return review


def delete_review(db: Session, *, review_id: int, reviewer_id: int) -> None:
    review = _require_own_review(db, review_id, reviewer_id)
    db.delete(review)
    db.commit()


def list_seller_reviews(db: Session, seller_id: int) -> List[Review]:
    if db.get(User, seller_id) is None:
        raise NotFoundError("Seller not found")
    return (
        _with_relations(db.query(Review))
        .filter(Review.seller_id == seller_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def list_my_reviews(db: Session, reviewer_id: int) -> List[Review]:
    return (
        _with_relations(db.query(Review))
        .filter(Review.reviewer_id == reviewer_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
