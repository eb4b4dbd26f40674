# tests/test_app.py
import time
from datetime import timedelta

from fastapi.testclient import TestClient

from helpers import make_auction, make_user
from market.config import project_rules as R
from market.config.time_policy import now_utc
from market.logic import bidding
from market.logic.mailer import ConsoleMailer
from market.main import app
from market.models import Item


def _wait_for_status(db, item_id: int, status: str, timeout: float = 5.0) -> str:
    deadline = time.monotonic() + timeout
    current = None
    while time.monotonic() < deadline:
        db.expire_all()
        current = db.get(Item, item_id).status
        if current == status:
            break
        time.sleep(0.05)
    return current


def test_health_and_version(client):
    assert client.get("/").json() == {"message": "Vintage Market API is running"}
    assert client.get("/health").json() == {"ok": True}
    assert client.get("/version").json()["version"] == "1.0.0"


def test_lifespan_opens_and_closes_mailer():
    with TestClient(app) as c:
        assert isinstance(app.state.mailer, ConsoleMailer)
        assert c.get("/health").status_code == 200
        assert c.get("/items").status_code == 200

    assert app.state.mailer is None


def test_worker_settles_expired_auction(db, monkeypatch):
    monkeypatch.setattr(R, "AUCTION_SWEEP_MAX_SLEEP_SECONDS", 0.05)
    seller = make_user(db, "seller")
    item = make_auction(db, seller.id, duration_days=1)
    R.set_test_now_utc(now_utc() + timedelta(days=2))

    # API 를 부르지 않는다 (조회 시 lazy 정산이 먼저 돌 수 있음)
    with TestClient(app):
        status = _wait_for_status(db, item.id, "delisted")

    assert status == "delisted"


def test_worker_survives_sweep_error(db, monkeypatch):
    monkeypatch.setattr(R, "AUCTION_SWEEP_MAX_SLEEP_SECONDS", 0.05)
    monkeypatch.setattr(R, "AUCTION_SWEEP_ERROR_BACKOFF_SECONDS", 0.05)

    real_sweep = bidding.run_settlement_sweep
    calls = []

    def _flaky_sweep():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("db hiccup")
        return real_sweep()

    monkeypatch.setattr(bidding, "run_settlement_sweep", _flaky_sweep)

    seller = make_user(db, "seller")
    bidder = make_user(db, "bidder")
    item = make_auction(db, seller.id, duration_days=1)
    bidding.place_bid(db, item_id=item.id, bidder_id=bidder.id, amount=100)
    R.set_test_now_utc(now_utc() + timedelta(days=2))

    with TestClient(app):
        status = _wait_for_status(db, item.id, "sold")

    assert status == "sold"
    assert len(calls) >= 2


def test_unauthorized_sets_www_authenticate(client):
    r = client.get("/auth/me")
    assert r.status_code == 401
    assert r.headers.get("www-authenticate") == "Bearer"
