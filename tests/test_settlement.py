# tests/test_settlement.py
from datetime import timedelta

from helpers import make_auction, make_fixed, make_user
from market import crud
from market.config import project_rules as R
from market.config.time_policy import as_utc, now_utc
from market.logic import bidding
from market.models import Item


def _end_of(item):
    return as_utc(item.auction_end_at)


def test_sweep_sells_with_bidder_and_delists_without(db):
    seller = make_user(db, "seller")
    bidder = make_user(db, "bidder")
    with_bid = make_auction(db, seller.id, duration_days=1)
    without_bid = make_auction(db, seller.id, duration_days=1)
    still_open = make_auction(db, seller.id, duration_days=3)
    fixed = make_fixed(db, seller.id)

    bidding.place_bid(db, item_id=with_bid.id, bidder_id=bidder.id, amount=100)

    settled = bidding.settle_expired_auctions(db, _end_of(with_bid) + timedelta(minutes=1))
    assert settled == 2

    db.expire_all()
    assert db.get(Item, with_bid.id).status == "sold"
    assert db.get(Item, with_bid.id).highest_bidder_id == bidder.id
    assert db.get(Item, without_bid.id).status == "delisted"
    assert db.get(Item, still_open.id).status == "active"
    assert db.get(Item, fixed.id).status == "active"


def test_sweep_is_idempotent(db):
    seller = make_user(db, "seller")
    item = make_auction(db, seller.id, duration_days=1)
    later = _end_of(item) + timedelta(hours=1)

    assert bidding.settle_expired_auctions(db, later) == 1
    assert bidding.settle_expired_auctions(db, later) == 0


def test_sweep_does_not_touch_seller_closed_items(db):
    seller = make_user(db, "seller")
    item = make_auction(db, seller.id, duration_days=1)
    bidding.delist_item(db, item_id=item.id, seller_id=seller.id)

    assert bidding.settle_expired_auctions(db, _end_of(item) + timedelta(hours=1)) == 0


def test_reading_an_expired_auction_settles_it(db):
    seller = make_user(db, "seller")
    bidder = make_user(db, "bidder")
    item = make_auction(db, seller.id, duration_days=1)
    bidding.place_bid(db, item_id=item.id, bidder_id=bidder.id, amount=100)

    R.set_test_now_utc(_end_of(item) + timedelta(seconds=5))
    got = crud.get_item(db, item.id)
    assert got.status == "sold"


def test_listing_runs_sweep_first(db):
    seller = make_user(db, "seller")
    item = make_auction(db, seller.id, duration_days=1)

    R.set_test_now_utc(_end_of(item) + timedelta(seconds=5))
    assert crud.list_items(db) == []
    db.expire_all()
    assert db.get(Item, item.id).status == "delisted"


def test_next_auction_end_and_sleep_cap(db):
    seller = make_user(db, "seller")
    assert bidding.next_auction_end(db) is None
    assert bidding.seconds_until_next_sweep(60) == 60

    soon = make_auction(db, seller.id, duration_days=1)
    make_auction(db, seller.id, duration_days=5)
    assert bidding.next_auction_end(db) == _end_of(soon)

    # 마감까지 하루 남았어도 최대 60초만 잔다
    assert bidding.seconds_until_next_sweep(60) == 60

    R.set_test_now_utc(_end_of(soon) - timedelta(seconds=10))
    assert 0 < bidding.seconds_until_next_sweep(60) <= 10

    R.set_test_now_utc(_end_of(soon) + timedelta(seconds=10))
    assert bidding.seconds_until_next_sweep(60) == 0


def test_run_settlement_sweep_uses_own_session(db):
    seller = make_user(db, "seller")
    item = make_auction(db, seller.id, duration_days=1)

    R.set_test_now_utc(now_utc() + timedelta(days=2))
    assert bidding.run_settlement_sweep() == 1
    db.expire_all()
    assert db.get(Item, item.id).status == "delisted"
