# market/routers/reviews.py
# 판매자 리뷰 (아이템 단위, 리뷰어-아이템 당 1건)
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from market import models, schemas
from market.database import get_db
from market.logic import ratings as RT
from market.security import get_current_user

router = APIRouter(prefix="/reviews", tags=["⭐ Reviews"])


@router.post("", response_model=schemas.ReviewActionOut, status_code=status.HTTP_201_CREATED)
def create_review(
    body: schemas.ReviewIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    review = RT.add_review(
        db,
        reviewer_id=current_user.id,
        item_id=body.item_id,
        rating=body.rating,
        comment=body.comment,
    )
    return schemas.ReviewActionOut(
        message="Review created successfully",
        review=schemas.ReviewOut.model_validate(review),
    )


@router.get("/my-reviews", response_model=schemas.MyReviewsOut)
def my_reviews(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    reviews = RT.list_my_reviews(db, current_user.id)
    return schemas.MyReviewsOut(reviews=[schemas.ReviewOut.model_validate(r) for r in reviews])


@router.get("/seller/{seller_id}", response_model=schemas.SellerReviewsOut)
def seller_reviews(seller_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    reviews = RT.list_seller_reviews(db, seller_id)
    total, average = RT.seller_rating(db, seller_id)
    return schemas.SellerReviewsOut(
        reviews=[schemas.ReviewOut.model_validate(r) for r in reviews],
        total_reviews=total,
        average_rating=average,
    )


@router.get("/seller/{seller_id}/rating", response_model=schemas.SellerRatingOut)
def seller_rating(seller_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    total, average = RT.seller_rating(db, seller_id)
    return schemas.SellerRatingOut(total_reviews=total, average_rating=average)


@router.put("/{review_id}", response_model=schemas.ReviewActionOut)
def update_review(
    body: schemas.ReviewUpdate,
    review_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    review = RT.update_review(
        db,
        review_id=review_id,
        reviewer_id=current_user.id,
        rating=body.rating,
        comment=body.comment,
    )
    return schemas.ReviewActionOut(
        message="Review updated successfully",
        review=schemas.ReviewOut.model_validate(review),
    )


@router.delete("/{review_id}", response_model=schemas.MessageOut)
def delete_review(
    review_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    RT.delete_review(db, review_id=review_id, reviewer_id=current_user.id)
    return schemas.MessageOut(message="Review deleted successfully")
