# market/models.py
# Vintage Market 모델: User(인증/OTP) / Item(+이미지) / Message / Review
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Boolean, LargeBinary,
    Index, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from .database import Base
from market.config.time_policy import to_db


def _utcnow_naive() -> datetime:
    # 테스트 시각 오버라이드를 따르도록 time_policy 경유
    return to_db()


# -------------------------------------------------------
# 🧩 User (인증 / OTP)
# -------------------------------------------------------
class OTPPurpose(str, enum.Enum):
    VERIFICATION = "verification"
    PASSWORD_RESET = "password-reset"
    PASSWORD_CHANGE = "password-change"
    EMAIL_CHANGE = "email-change"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)

    # 대기 중인 OTP: 세 필드는 항상 같이 채워지고 같이 비워진다
    otp = Column(String(12), nullable=True)
    otp_expires_at = Column(DateTime, nullable=True)
    otp_purpose = Column(String(32), nullable=True)

    created_at = Column(DateTime, default=_utcnow_naive)

    items = relationship("Item", back_populates="seller", foreign_keys="Item.seller_id")

    __table_args__ = (
        CheckConstraint(
            "(otp IS NULL AND otp_expires_at IS NULL AND otp_purpose IS NULL) OR "
            "(otp IS NOT NULL AND otp_expires_at IS NOT NULL AND otp_purpose IS NOT NULL)",
            name="ck_user_otp_fields_together",
        ),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', verified={self.is_verified})>"


# -------------------------------------------------------
# 📦 Item (고정가 / 경매)
# -------------------------------------------------------
class ItemCondition(str, enum.Enum):
    NEW = "new"
    USED = "used"
    ANTIQUE = "antique"


class ListingType(str, enum.Enum):
    FIXED = "fixed"
    AUCTION = "auction"


class ItemStatus(str, enum.Enum):
    ACTIVE = "active"
    SOLD = "sold"
    DELISTED = "delisted"


class Item(Base):
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)
    condition = Column(String(16), nullable=False)
    era = Column(String, nullable=True)
    location = Column(String, nullable=False)

    listing_type = Column(String(16), nullable=False)

    # fixed 전용
    price = Column(Integer, nullable=True)

    # auction 전용 (금액은 최소 통화단위 정수)
    starting_bid = Column(Integer, nullable=True)
    bid_increment = Column(Integer, nullable=True)
    current_bid = Column(Integer, nullable=True)
    highest_bidder_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    bid_count = Column(Integer, nullable=False, default=0, server_default="0")
    auction_end_at = Column(DateTime, nullable=True)

    status = Column(String(16), nullable=False, default=ItemStatus.ACTIVE.value)
    views = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime, default=_utcnow_naive)
    updated_at = Column(DateTime, default=_utcnow_naive, onupdate=_utcnow_naive)

    seller = relationship("User", back_populates="items", foreign_keys=[seller_id])
    images = relationship(
        "ItemImage",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemImage.id",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("condition IN ('new', 'used', 'antique')", name="ck_item_condition"),
        CheckConstraint("status IN ('active', 'sold', 'delisted')", name="ck_item_status"),
        # 리스팅 종류별 필드 존재 여부 (fixed ↔ auction 상호 배타)
        CheckConstraint(
            "(listing_type = 'fixed' AND price IS NOT NULL AND starting_bid IS NULL "
            " AND bid_increment IS NULL AND current_bid IS NULL AND auction_end_at IS NULL) OR "
            "(listing_type = 'auction' AND price IS NULL AND starting_bid IS NOT NULL "
            " AND bid_increment IS NOT NULL AND current_bid IS NOT NULL AND auction_end_at IS NOT NULL)",
            name="ck_item_listing_fields",
        ),
        CheckConstraint("bid_count >= 0", name="ck_item_bid_count_nonneg"),
        Index("ix_item_status_created", "status", "created_at"),
        Index("ix_item_auction_sweep", "listing_type", "status", "auction_end_at"),
    )

    @property
    def is_auction(self) -> bool:
        return self.listing_type == ListingType.AUCTION.value

    def minimum_bid(self) -> int:
        """첫 입찰은 시작가 이상, 이후에는 현재가 + 입찰단위 이상."""
        if int(self.bid_count or 0) > 0:
            return int(self.current_bid) + int(self.bid_increment)
        return int(self.starting_bid)


class ItemImage(Base):
    __tablename__ = "item_images"

    id = Column(Integer, primary_key=True, index=True)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="CASCADE"), nullable=False, index=True)
    # 원본 바이트 그대로 저장 (data URI 인코딩은 응답 직전에만)
    data = Column(LargeBinary, nullable=False)
    content_type = Column(String(64), nullable=False)
    filename = Column(String, nullable=False)

    item = relationship("Item", back_populates="images")


# -------------------------------------------------------
# 💬 Message (1:1 채팅)
# -------------------------------------------------------
class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    text = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow_naive, index=True)

    __table_args__ = (
        Index("ix_message_sender_receiver", "sender_id", "receiver_id"),
        Index("ix_message_receiver_read", "receiver_id", "is_read"),
    )


# -------------------------------------------------------
# ⭐ Review (판매자 리뷰, 리뷰어-아이템 당 1건)
# -------------------------------------------------------
class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id", ondelete="SET NULL"), nullable=True, index=True)

    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=False)

    created_at = Column(DateTime, default=_utcnow_naive)
    updated_at = Column(DateTime, default=_utcnow_naive, onupdate=_utcnow_naive)

    reviewer = relationship("User", foreign_keys=[reviewer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    item = relationship("Item")

    __table_args__ = (
        UniqueConstraint("reviewer_id", "item_id", name="uq_review_once_per_reviewer_item"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_review_rating_range"),
        Index("ix_review_seller_created", "seller_id", "created_at"),
    )
