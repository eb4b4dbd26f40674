# market/routers/items.py
# 아이템 리스팅 (고정가/경매) + 입찰 + 판매자 상태 전이
from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.orm import Session

from market import crud, models, schemas
from market.config.time_policy import as_utc
from market.database import get_db
from market.logic import bidding
from market.models import ItemStatus, ListingType
from market.security import get_current_user

router = APIRouter(prefix="/items", tags=["📦 Items"])


@router.get("", response_model=schemas.ItemListOut)
def list_items(
    category: Optional[str] = Query(None),
    listing_type: Optional[ListingType] = Query(None, alias="listingType"),
    item_status: ItemStatus = Query(ItemStatus.ACTIVE, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db),
):
    items = crud.list_items(
        db,
        category=category,
        listing_type=listing_type,
        status=item_status,
        search=search,
    )
    return schemas.ItemListOut(items=[crud.item_out(i) for i in items])


@router.post("", response_model=schemas.ItemCreatedOut, status_code=status.HTTP_201_CREATED)
def create_item(
    body: schemas.ItemCreate = Body(...),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    item = crud.create_item(db, seller_id=current_user.id, payload=body)
    return schemas.ItemCreatedOut(
        message="Item created successfully",
        id=item.id,
        title=item.title,
        listing_type=item.listing_type,
        status=item.status,
    )


# /my/... 는 /{item_id} 보다 먼저 등록
@router.get("/my/items", response_model=schemas.ItemListOut)
def my_items(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    items = crud.list_my_items(db, current_user.id)
    return schemas.ItemListOut(items=[crud.item_out(i) for i in items])


@router.get("/my/bids", response_model=schemas.MyBidsOut)
def my_bids(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    items = crud.list_my_bids(db, current_user.id)
    return schemas.MyBidsOut(bids=[crud.item_out(i) for i in items], count=len(items))


@router.get("/{item_id}", response_model=schemas.ItemDetailOut)
def get_item(item_id: int = Path(..., ge=1), db: Session = Depends(get_db)):
    item = crud.get_item(db, item_id)
    return schemas.ItemDetailOut(item=crud.item_out(item))


@router.put("/{item_id}", response_model=schemas.ItemActionOut)
def update_item(
    body: schemas.ItemUpdate,
    item_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    item = bidding.update_item(
        db,
        item_id=item_id,
        seller_id=current_user.id,
        changes=body.model_dump(exclude_unset=True, exclude={"images"}),
        images=body.images,
    )
    return schemas.ItemActionOut(message="Item updated successfully", item=crud.item_out(item))


@router.put("/{item_id}/mark-sold", response_model=schemas.ItemActionOut)
def mark_as_sold(
    item_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    item = bidding.mark_as_sold(db, item_id=item_id, seller_id=current_user.id)
    return schemas.ItemActionOut(message="Item marked as sold", item=crud.item_out(item))


@router.put("/{item_id}/delist", response_model=schemas.ItemActionOut)
def delist_item(
    item_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    item = bidding.delist_item(db, item_id=item_id, seller_id=current_user.id)
    return schemas.ItemActionOut(message="Item delisted", item=crud.item_out(item))


@router.delete("/{item_id}", response_model=schemas.MessageOut)
def delete_item(
    item_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    bidding.delete_item(db, item_id=item_id, seller_id=current_user.id)
    return schemas.MessageOut(message="Item deleted successfully")


# -----------------------------------------------------
# 입찰 (POST / PUT 둘 다 허용)
# -----------------------------------------------------
def _bid(item_id: int, body: schemas.BidIn, db: Session, bidder: models.User) -> schemas.BidOut:
    item = bidding.place_bid(db, item_id=item_id, bidder_id=bidder.id, amount=body.bid_amount)
    return schemas.BidOut(
        message="Bid placed successfully",
        id=item.id,
        title=item.title,
        current_bid=item.current_bid,
        bid_count=item.bid_count,
        highest_bidder_id=item.highest_bidder_id,
        status=item.status,
        auction_end_at=as_utc(item.auction_end_at),
    )


@router.post("/{item_id}/bid", response_model=schemas.BidOut)
def place_bid(
    body: schemas.BidIn,
    item_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _bid(item_id, body, db, current_user)


@router.put("/{item_id}/bid", response_model=schemas.BidOut)
def place_bid_put(
    body: schemas.BidIn,
    item_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return _bid(item_id, body, db, current_user)
