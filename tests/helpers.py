# tests/helpers.py
# 테스트 헬퍼 (기록용 메일러 / 유저 / 리스팅 / 로그인)
import zlib
from typing import List, Optional

from fastapi.testclient import TestClient

from market import crud, schemas
from market.logic.mailer import MailDeliveryError, Mailer
from market.models import OTPPurpose


def phone_for(name: str) -> str:
    return f"010-{zlib.crc32(name.encode()) % 100_000_000:08d}"


def make_user(db, name: str = "alice", *, phone: Optional[str] = None, password: str = "secret1", verified: bool = True):
    payload = schemas.RegisterIn(
        name=name,
        email=f"{name}@example.com",
        phone=phone or phone_for(name),
        password=password,
    )
    return crud.create_user(db, payload, verified=verified)


def make_auction(db, seller_id: int, *, starting_bid: int = 100, bid_increment: int = 10, duration_days: int = 7):
    payload = schemas.AuctionListingCreate(
        title="Walnut sideboard",
        description="1960s teak/walnut sideboard",
        category="furniture",
        condition="antique",
        location="Seoul",
        listing_type="auction",
        starting_bid=starting_bid,
        bid_increment=bid_increment,
        duration_days=duration_days,
    )
    return crud.create_item(db, seller_id=seller_id, payload=payload)


def make_fixed(db, seller_id: int, *, price: int = 50000, title: str = "Brass desk lamp"):
    payload = schemas.FixedListingCreate(
        title=title,
        description="Working condition, original shade",
        category="lighting",
        condition="used",
        location="Busan",
        listing_type="fixed",
        price=price,
    )
    return crud.create_item(db, seller_id=seller_id, payload=payload)


def register(client: TestClient, name: str, *, password: str = "secret1", phone: Optional[str] = None) -> dict:
    r = client.post(
        "/auth/register",
        json={
            "name": name,
            "email": f"{name}@example.com",
            "phone": phone or phone_for(name),
            "password": password,
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def login(client: TestClient, name: str, *, password: str = "secret1") -> dict:
    r = client.post("/auth/login", json={"emailOrPhone": f"{name}@example.com", "password": password})
    assert r.status_code == 200, r.text
    return r.json()


def auth_headers(client: TestClient, name: str, *, password: str = "secret1") -> dict:
    token = login(client, name, password=password)["accessToken"]
    return {"Authorization": f"Bearer {token}"}


class RecordingMailer(Mailer):
    """보낸 OTP 를 기억해두는 테스트용 메일러. fail=True 면 전송 실패."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.outbox: List[dict] = []

    def send(self, to_email: str, subject: str, text: str, html: str) -> None:
        if self.fail:
            raise MailDeliveryError("smtp down")
        self.outbox.append({"to": to_email, "subject": subject, "text": text})

    def send_otp(self, to_email: str, otp: str, purpose: OTPPurpose) -> None:
        super().send_otp(to_email, otp, purpose)
        self.outbox[-1].update({"otp": otp, "purpose": purpose})

    def last_otp(self, to_email: str) -> Optional[str]:
        for mail in reversed(self.outbox):
            if mail["to"] == to_email and "otp" in mail:
                return mail["otp"]
        return None
