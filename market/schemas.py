# ===== Vintage Market Schemas (Auth / Items / Bids / Chat / Reviews) =====
from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from market.config import project_rules as R
from market.config.time_policy import as_utc
from market.models import ItemCondition, ItemStatus, ListingType


# ─────────────────────────────────────────────────────────
# 공통 베이스: 응답은 camelCase, 요청은 camel/snake 둘 다 허용
# ─────────────────────────────────────────────────────────
class ORMModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class MessageOut(ORMModel):
    message: str


# ---------------- Auth ----------------
class RegisterIn(ORMModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=3, max_length=32)
    password: str = Field(..., min_length=R.PASSWORD_MIN_LENGTH)


class RegisterOut(ORMModel):
    message: str
    user_id: int
    email: str
    is_verified: bool


class LoginIn(ORMModel):
    email_or_phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserOut(ORMModel):
    id: int
    name: str
    email: str
    phone: str
    is_verified: bool


class TokenOut(ORMModel):
    message: str
    user_id: int
    email: str
    access_token: str
    token_type: str = "bearer"
    user: Optional[UserOut] = None


class UserIdIn(ORMModel):
    user_id: int = Field(..., ge=1)


class VerifyOTPIn(ORMModel):
    user_id: int = Field(..., ge=1)
    otp: str = Field(..., min_length=1, max_length=12)


class EmailIn(ORMModel):
    email: EmailStr


class EmailOTPIn(ORMModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=12)


class ResetPasswordIn(ORMModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=12)
    new_password: str = Field(..., min_length=R.PASSWORD_MIN_LENGTH)


class ChangeEmailIn(ORMModel):
    new_email: EmailStr
    otp: str = Field(..., min_length=1, max_length=12)


class ChangePasswordIn(ORMModel):
    new_password: str = Field(..., min_length=R.PASSWORD_MIN_LENGTH)
    otp: str = Field(..., min_length=1, max_length=12)


class OTPSentOut(ORMModel):
    message: str
    email: Optional[str] = None


# ---------------- Images ----------------
class ImageIn(ORMModel):
    # data URI("data:image/png;base64,...") 또는 순수 base64
    data: str = Field(..., min_length=1)
    content_type: Optional[str] = None
    filename: Optional[str] = None


class ImageOut(ORMModel):
    data: str
    content_type: str
    filename: str


# ---------------- Items (리스팅 종류별 tagged union) ----------------
class _ItemCreateBase(ORMModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    condition: ItemCondition
    era: Optional[str] = None
    location: str = Field(..., min_length=1)
    images: List[ImageIn] = Field(default_factory=list, max_length=R.MAX_IMAGES_PER_ITEM)


class FixedListingCreate(_ItemCreateBase):
    listing_type: Literal["fixed"]
    price: int = Field(..., ge=0)


class AuctionListingCreate(_ItemCreateBase):
    listing_type: Literal["auction"]
    starting_bid: int = Field(..., ge=0)
    bid_increment: int = Field(R.DEFAULT_BID_INCREMENT, gt=0)
    duration_days: int = Field(
        R.DEFAULT_AUCTION_DURATION_DAYS, ge=1, le=R.MAX_AUCTION_DURATION_DAYS
    )


ItemCreate = Annotated[
    Union[FixedListingCreate, AuctionListingCreate],
    Field(discriminator="listing_type"),
]


class ItemUpdate(ORMModel):
    """
    판매자 편집 가능 필드만. 상태/입찰 필드/리스팅 종류는 여기서 못 바꾼다.
    """
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    condition: Optional[ItemCondition] = None
    era: Optional[str] = None
    location: Optional[str] = Field(None, min_length=1)
    images: Optional[List[ImageIn]] = Field(None, max_length=R.MAX_IMAGES_PER_ITEM)

    # fixed 전용
    price: Optional[int] = Field(None, ge=0)
    # auction 전용 (입찰이 없을 때만)
    starting_bid: Optional[int] = Field(None, ge=0)
    bid_increment: Optional[int] = Field(None, gt=0)


class ItemCreatedOut(ORMModel):
    message: str
    id: int
    title: str
    listing_type: ListingType
    status: ItemStatus


class UserBrief(ORMModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None


class ItemOut(ORMModel):
    id: int
    seller_id: int
    seller: Optional[UserBrief] = None
    title: str
    description: str
    category: str
    condition: ItemCondition
    era: Optional[str] = None
    location: str
    listing_type: ListingType
    price: Optional[int] = None
    starting_bid: Optional[int] = None
    bid_increment: Optional[int] = None
    current_bid: Optional[int] = None
    highest_bidder_id: Optional[int] = None
    bid_count: int = 0
    auction_end_at: Optional[datetime] = None
    status: ItemStatus
    views: int = 0
    images: List[ImageOut] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ItemListOut(ORMModel):
    items: List[ItemOut]


class ItemDetailOut(ORMModel):
    item: ItemOut


class ItemActionOut(ORMModel):
    message: str
    item: Optional[ItemOut] = None


class MyBidsOut(ORMModel):
    bids: List[ItemOut]
    count: int


# ---------------- Bids ----------------
class BidIn(ORMModel):
    bid_amount: int = Field(..., gt=0)


class BidOut(ORMModel):
    message: str
    id: int
    title: str
    current_bid: int
    bid_count: int
    highest_bidder_id: int
    status: ItemStatus
    auction_end_at: datetime


# ---------------- Chat ----------------
class ChatSendIn(ORMModel):
    receiver_id: int = Field(..., ge=1)
    message: str = Field(..., min_length=1, max_length=R.MESSAGE_MAX_LENGTH)


class ChatMessageOut(ORMModel):
    id: int
    sender_id: int
    receiver_id: int
    message: str
    is_read: bool
    created_at: datetime


class ChatSentOut(ORMModel):
    message: str
    chat: ChatMessageOut


class ChatHistoryOut(ORMModel):
    messages: List[ChatMessageOut]


class ConversationOut(ORMModel):
    user: UserBrief
    last_message: str
    timestamp: datetime
    unread_count: int


class ConversationListOut(ORMModel):
    conversations: List[ConversationOut]


class MarkReadOut(ORMModel):
    message: str
    updated: int


# ---------------- Reviews ----------------
class ReviewIn(ORMModel):
    item_id: int = Field(..., ge=1)
    rating: int = Field(..., ge=R.RATING_MIN, le=R.RATING_MAX)
    comment: str = Field(..., min_length=1, max_length=R.REVIEW_COMMENT_MAX)


class ReviewUpdate(ORMModel):
    rating: Optional[int] = Field(None, ge=R.RATING_MIN, le=R.RATING_MAX)
    comment: Optional[str] = Field(None, min_length=1, max_length=R.REVIEW_COMMENT_MAX)


class ItemBrief(ORMModel):
    id: int
    title: str


class ReviewOut(ORMModel):
    id: int
    seller_id: int
    reviewer_id: int
    item_id: Optional[int] = None
    rating: int
    comment: str
    reviewer: Optional[UserBrief] = None
    item: Optional[ItemBrief] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # DB 는 naive UTC → 응답은 aware UTC
    @field_validator("created_at", "updated_at")
    @classmethod
    def _aware_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class ReviewActionOut(ORMModel):
    message: str
    review: ReviewOut


class SellerRatingOut(ORMModel):
    total_reviews: int
    average_rating: float


class SellerReviewsOut(SellerRatingOut):
    reviews: List[ReviewOut]


class MyReviewsOut(ORMModel):
    reviews: List[ReviewOut]
