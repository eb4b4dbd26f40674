# market/logic/bidding.py
"""
Bid Engine: 경매 입찰 / 판매자 상태 전이 / 만료 경매 정산.

상태 전이: active → sold, active → delisted (둘 다 종착)

동시성:
- 입찰은 조건부 UPDATE 하나(compare-and-swap). WHERE 절에 모든 전제조건
  (active, 마감 전, 최소 입찰가)을 다시 적기 때문에 rowcount=0 이면
  다른 쓰기가 먼저 이긴 것 → 최신 값으로 다시 읽어서 에러를 돌려준다.
- 정산은 "낙찰자 있음 → sold", "없음 → delisted" 두 개의 벌크 UPDATE.
  입찰 조건(auction_end_at > now)과 정산 조건(auction_end_at <= now)은 겹치지 않음.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, or_, update
from sqlalchemy.orm import Session

from market.config.feature_flags import FEATURE_FLAGS
from market.config.time_policy import as_utc, now_utc, to_db
from market.database import SessionLocal
from market.errors import (
    AuctionClosedError,
    BidTooLowError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from market.logic.images import decode_images
from market.models import Item, ItemStatus, ListingType

logger = logging.getLogger(__name__)

_AUCTION = ListingType.AUCTION.value
_ACTIVE = ItemStatus.ACTIVE.value

# 판매자가 수정할 수 있는 일반 필드
_PLAIN_FIELDS = ("title", "description", "category", "condition", "era", "location")


def _require_item(db: Session, item_id: int) -> Item:
    item = db.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item not found")
    return item


def _require_seller(item: Item, user_id: int) -> None:
    if item.seller_id != user_id:
        raise ForbiddenError("Not authorized")


def _is_past_end(item: Item, now: datetime) -> bool:
    end = as_utc(item.auction_end_at)
    return end is not None and end <= now


# ---------------------------------------------------------------------
# 정산
# ---------------------------------------------------------------------
def settle_expired_auctions(
    db: Session,
    now: Optional[datetime] = None,
    *,
    item_id: Optional[int] = None,
) -> int:
    """마감 지난 active 경매 → 낙찰자 있으면 sold, 없으면 delisted"""
    now_db = to_db(now)
    base = [
        Item.listing_type == _AUCTION,
        Item.status == _ACTIVE,
        Item.auction_end_at <= now_db,
    ]
    if item_id is not None:
        base.append(Item.id == item_id)

    sold = db.execute(
        update(Item)
        .where(*base, Item.highest_bidder_id.isnot(None))
        .values(status=ItemStatus.SOLD.value, updated_at=now_db)
        .execution_options(synchronize_session=False)
    ).rowcount
    delisted = db.execute(
        update(Item)
        .where(*base, Item.highest_bidder_id.is_(None))
        .values(status=ItemStatus.DELISTED.value, updated_at=now_db)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()

    total = int(sold or 0) + int(delisted or 0)
    if total:
        db.expire_all()
        logger.info("[settle] sold=%s delisted=%s (item=%s)", sold, delisted, item_id or "*")
    return total


def settle_item_if_expired(db: Session, item: Item, now: Optional[datetime] = None) -> Item:
    """조회/입찰 시점 lazy 정산 (한 건)."""
    now = now or now_utc()
    if (
        FEATURE_FLAGS.get("AUTO_SETTLE_AUCTIONS")
        and item.is_auction
        and item.status == _ACTIVE
        and _is_past_end(item, now)
    ):
        if settle_expired_auctions(db, now, item_id=item.id):
            db.refresh(item)
    return item


def next_auction_end(db: Session) -> Optional[datetime]:
    """다음으로 마감될 active 경매의 마감 시각 (aware UTC)"""
    row = (
        db.query(func.min(Item.auction_end_at))
        .filter(Item.listing_type == _AUCTION, Item.status == _ACTIVE)
        .scalar()
    )
    return as_utc(row)


def run_settlement_sweep() -> int:
    """워커용: 자기 세션으로 한 번 스윕."""
    db = SessionLocal()
    try:
        return settle_expired_auctions(db)
    finally:
        db.close()


def seconds_until_next_sweep(max_sleep: float) -> float:
    db = SessionLocal()
    try:
        nxt = next_auction_end(db)
    finally:
        db.close()
    if nxt is None:
        return max_sleep
    delay = (nxt - now_utc()).total_seconds()
    return min(max(delay, 0.0), max_sleep)


# ---------------------------------------------------------------------
# 입찰
# ---------------------------------------------------------------------
def _raise_for_rejected_bid(item: Item, amount: int, now: datetime) -> None:
    if item.status != _ACTIVE or _is_past_end(item, now):
        raise AuctionClosedError()
    minimum = item.minimum_bid()
    if amount < minimum:
        raise BidTooLowError(minimum, int(item.bid_increment))


def place_bid(
    db: Session,
    *,
    item_id: int,
    bidder_id: int,
    amount: int,
    now: Optional[datetime] = None,
) -> Item:
    now = now or now_utc()
    item = _require_item(db, item_id)

    if not item.is_auction:
        raise ValidationError("This item is not an auction")
    if item.seller_id == bidder_id:
        raise ForbiddenError("You cannot bid on your own item")

    settle_item_if_expired(db, item, now)
    _raise_for_rejected_bid(item, amount, now)

    now_db = to_db(now)
    stmt = (
        update(Item)
        .where(
            Item.id == item_id,
            Item.listing_type == _AUCTION,
            Item.status == _ACTIVE,
            Item.auction_end_at > now_db,
            or_(
                and_(Item.bid_count == 0, Item.starting_bid <= amount),
                and_(Item.bid_count > 0, Item.current_bid + Item.bid_increment <= amount),
            ),
        )
        .values(
            current_bid=amount,
            highest_bidder_id=bidder_id,
            bid_count=Item.bid_count + 1,
            updated_at=now_db,
        )
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)

    if res.rowcount != 1:
        db.rollback()
        db.expire_all()
        fresh = _require_item(db, item_id)
        logger.info("[bid] lost race item=%s bidder=%s amount=%s", item_id, bidder_id, amount)
        _raise_for_rejected_bid(fresh, amount, now)
        # 다시 읽은 값으로는 통과하는 경우: 그 사이 값이 바뀐 것이므로 최신 최소가로 거절
        raise BidTooLowError(fresh.minimum_bid(), int(fresh.bid_increment))

    db.commit()
    db.refresh(item)
    logger.info(
        "[bid] accepted item=%s bidder=%s amount=%s count=%s",
        item_id, bidder_id, amount, item.bid_count,
    )
    return item


# ---------------------------------------------------------------------
# 판매자 작업
# ---------------------------------------------------------------------
def _transition(db: Session, item_id: int, seller_id: int, target: ItemStatus) -> Item:
    item = _require_item(db, item_id)
    _require_seller(item, seller_id)

    res = db.execute(
        update(Item)
        .where(Item.id == item_id, Item.status == _ACTIVE)
        .values(status=target.value, updated_at=to_db())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        db.refresh(item)
        raise InvalidStateError(f"cannot change status: status={item.status}")

    db.commit()
    db.refresh(item)
    logger.info("[item] %s → %s by seller=%s", item_id, target.value, seller_id)
    return item


def mark_as_sold(db: Session, *, item_id: int, seller_id: int) -> Item:
    return _transition(db, item_id, seller_id, ItemStatus.SOLD)


def delist_item(db: Session, *, item_id: int, seller_id: int) -> Item:
    return _transition(db, item_id, seller_id, ItemStatus.DELISTED)


def update_item(
    db: Session,
    *,
    item_id: int,
    seller_id: int,
    changes: Dict[str, Any],
    images: Optional[List[Any]] = None,
) -> Item:
    """
    changes: ItemUpdate.model_dump(exclude_unset=True, exclude={"images"})
    images: ImageIn 목록이면 통째로 교체, None 이면 유지
    - 입찰 필드 / 판매자 / 상태 / 리스팅 종류는 못 바꿈 (스키마에서 이미 차단)
    - 경매 가격 필드는 입찰이 하나도 없을 때만
    """
    item = _require_item(db, item_id)
    _require_seller(item, seller_id)

    if item.status != _ACTIVE:
        raise InvalidStateError(f"cannot edit: status={item.status}")

    pricing: Dict[str, Any] = {}
    if item.is_auction:
        if changes.get("price") is not None:
            raise ValidationError("price applies to fixed listings only")
        for key in ("starting_bid", "bid_increment"):
            if changes.get(key) is not None:
                pricing[key] = changes[key]
    else:
        if changes.get("starting_bid") is not None or changes.get("bid_increment") is not None:
            raise ValidationError("bidding fields apply to auction listings only")
        if changes.get("price") is not None:
            item.price = changes["price"]

    if pricing:
        values = dict(pricing)
        if "starting_bid" in pricing:
            # 입찰 전 current_bid 는 항상 시작가
            values["current_bid"] = pricing["starting_bid"]
        res = db.execute(
            update(Item)
            .where(Item.id == item_id, Item.bid_count == 0, Item.status == _ACTIVE)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            db.rollback()
            raise InvalidStateError("Cannot change auction pricing after bids have been placed")

    for key in _PLAIN_FIELDS:
        if key in changes and changes[key] is not None:
            value = changes[key]
            setattr(item, key, value.value if hasattr(value, "value") else value)
    if "era" in changes and changes["era"] is None:
        item.era = None

    if images is not None:
        item.images = decode_images(images)

    item.updated_at = to_db()
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def delete_item(db: Session, *, item_id: int, seller_id: int) -> None:
    item = _require_item(db, item_id)
    _require_seller(item, seller_id)
    db.delete(item)
    db.commit()
    logger.info("[item] deleted id=%s by seller=%s", item_id, seller_id)
