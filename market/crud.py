# market/crud.py
# 사용자 / 아이템 기본 CRUD + 응답 직렬화 헬퍼
from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, selectinload

from market import schemas
from market.config.feature_flags import FEATURE_FLAGS
from market.config.time_policy import after, as_utc, now_utc, to_db
from market.errors import ConflictError, NotFoundError
from market.logic import bidding
from market.logic.images import decode_images, encode_image
from market.models import Item, ItemStatus, ListingType, User
from market.security import get_password_hash

logger = logging.getLogger(__name__)


# -------------------------------------------------------
# 👤 User
# -------------------------------------------------------
def create_user(db: Session, payload: schemas.RegisterIn, *, verified: bool) -> User:
    email = payload.email.lower()
    phone = payload.phone.strip()

    exists = db.query(User.id).filter(or_(User.email == email, User.phone == phone)).first()
    if exists:
        raise ConflictError("User already exists")

    user = User(
        name=payload.name.strip(),
        email=email,
        phone=phone,
        password_hash=get_password_hash(payload.password),
        is_verified=verified,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User already exists")
    db.refresh(user)
    logger.info("[user] registered id=%s verified=%s", user.id, verified)
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == (email or "").strip().lower()).first()


def email_taken(db: Session, email: str, *, exclude_user_id: Optional[int] = None) -> bool:
    q = db.query(User.id).filter(User.email == email.lower())
    if exclude_user_id is not None:
        q = q.filter(User.id != exclude_user_id)
    return q.first() is not None


# -------------------------------------------------------
# 📦 Item
# -------------------------------------------------------
def _item_query(db: Session):
    return db.query(Item).options(
        joinedload(Item.seller),
        selectinload(Item.images),
    )


def create_item(db: Session, *, seller_id: int, payload) -> Item:
    """payload: schemas.FixedListingCreate | schemas.AuctionListingCreate"""
    item = Item(
        seller_id=seller_id,
        title=payload.title.strip(),
        description=payload.description,
        category=payload.category,
        condition=payload.condition.value,
        era=payload.era,
        location=payload.location,
        listing_type=payload.listing_type,
        status=ItemStatus.ACTIVE.value,
        views=0,
        bid_count=0,
    )
    if payload.listing_type == ListingType.AUCTION.value:
        item.starting_bid = payload.starting_bid
        item.bid_increment = payload.bid_increment
        item.current_bid = payload.starting_bid
        item.auction_end_at = to_db(after(days=payload.duration_days))
    else:
        item.price = payload.price

    item.images = decode_images(payload.images)

    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("[item] created id=%s type=%s seller=%s", item.id, item.listing_type, seller_id)
    return item


def list_items(
    db: Session,
    *,
    category: Optional[str] = None,
    listing_type: Optional[ListingType] = None,
    status: Optional[ItemStatus] = ItemStatus.ACTIVE,
    search: Optional[str] = None,
) -> List[Item]:
    if FEATURE_FLAGS.get("AUTO_SETTLE_AUCTIONS"):
        bidding.settle_expired_auctions(db)

    q = _item_query(db)
    if status is not None:
        q = q.filter(Item.status == status.value)
    if category:
        q = q.filter(Item.category == category)
    if listing_type is not None:
        q = q.filter(Item.listing_type == listing_type.value)
    if search:
        needle = search.strip().lower()
        q = q.filter(
            or_(
                func.lower(Item.title).contains(needle, autoescape=True),
                func.lower(Item.description).contains(needle, autoescape=True),
            )
        )
    return q.order_by(Item.created_at.desc(), Item.id.desc()).all()


def list_my_items(db: Session, seller_id: int) -> List[Item]:
    return (
        _item_query(db)
        .filter(Item.seller_id == seller_id)
        .order_by(Item.created_at.desc(), Item.id.desc())
        .all()
    )


def list_my_bids(db: Session, bidder_id: int) -> List[Item]:
    """내가 현재 최고 입찰자인 진행 중 경매 (마감 임박 순)"""
    if FEATURE_FLAGS.get("AUTO_SETTLE_AUCTIONS"):
        bidding.settle_expired_auctions(db)
    return (
        _item_query(db)
        .filter(
            Item.listing_type == ListingType.AUCTION.value,
            Item.status == ItemStatus.ACTIVE.value,
            Item.highest_bidder_id == bidder_id,
        )
        .order_by(Item.auction_end_at.asc(), Item.id.asc())
        .all()
    )


def get_item(db: Session, item_id: int, *, count_view: bool = True) -> Item:
    if count_view:
        res = db.execute(
            update(Item)
            .where(Item.id == item_id)
            .values(views=Item.views + 1, updated_at=Item.updated_at)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if res.rowcount != 1:
            raise NotFoundError("Item not found")

    item = _item_query(db).filter(Item.id == item_id).first()
    if item is None:
        raise NotFoundError("Item not found")
    return bidding.settle_item_if_expired(db, item, now_utc())


# -------------------------------------------------------
# 응답 직렬화 (이미지 바이트 → data URI)
# -------------------------------------------------------
def serialize_item(item: Item) -> dict:
    seller = item.seller
    return {
        "id": item.id,
        "seller_id": item.seller_id,
        "seller": (
            {"id": seller.id, "name": seller.name, "email": seller.email, "phone": seller.phone}
            if seller is not None else None
        ),
        "title": item.title,
        "description": item.description,
        "category": item.category,
        "condition": item.condition,
        "era": item.era,
        "location": item.location,
        "listing_type": item.listing_type,
        "price": item.price,
        "starting_bid": item.starting_bid,
        "bid_increment": item.bid_increment,
        "current_bid": item.current_bid,
        "highest_bidder_id": item.highest_bidder_id,
        "bid_count": int(item.bid_count or 0),
        "auction_end_at": as_utc(item.auction_end_at),
        "status": item.status,
        "views": int(item.views or 0),
        "images": [encode_image(img) for img in item.images],
        "created_at": as_utc(item.created_at),
        "updated_at": as_utc(item.updated_at),
    }


def item_out(item: Item) -> schemas.ItemOut:
    return schemas.ItemOut.model_validate(serialize_item(item))
