# market/logic/conversations.py
"""
1:1 채팅 + 대화 목록 인덱스.

- 대화 목록: 시작 시점의 최대 message id(high-water)까지만 한 번 읽고,
  그 스냅샷으로 "마지막 메시지"와 "안 읽은 개수"를 같이 계산한다.
- 읽음 처리: 돌려준 스냅샷에 있던 상대→나 메시지 id 만 is_read=true.
  그 사이 새로 들어온 메시지는 읽음 처리되지도, 빠지지도 않는다.
"""
from __future__ import annotations

import logging
from typing import Dict, List

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from market.config.time_policy import as_utc
from market.errors import NotFoundError, ValidationError
from market.models import Message, User

logger = logging.getLogger(__name__)


def serialize_message(m: Message) -> dict:
    return {
        "id": m.id,
        "sender_id": m.sender_id,
        "receiver_id": m.receiver_id,
        "message": m.text,
        "is_read": bool(m.is_read),
        "created_at": as_utc(m.created_at),
    }


def _high_water(db: Session) -> int:
    return int(db.query(func.max(Message.id)).scalar() or 0)


def _require_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def send_message(db: Session, *, sender_id: int, receiver_id: int, text: str) -> Message:
    if sender_id == receiver_id:
        raise ValidationError("You cannot send a message to yourself")
    if not (text or "").strip():
        raise ValidationError("Message is required")
    _require_user(db, receiver_id)

    msg = Message(sender_id=sender_id, receiver_id=receiver_id, text=text, is_read=False)
    db.add(msg)
    db.commit()
    db.refresh(msg)
    return msg


def list_conversations(db: Session, *, me: int) -> List[dict]:
    hw = _high_water(db)
    rows: List[Message] = (
        db.query(Message)
        .filter(
            or_(Message.sender_id == me, Message.receiver_id == me),
            Message.id <= hw,
        )
        .order_by(Message.id.desc())
        .all()
    )

    # 1) 상대별 마지막 메시지 (id 내림차순이라 처음 본 게 마지막)
    last: Dict[int, Message] = {}
    for m in rows:
        other = m.receiver_id if m.sender_id == me else m.sender_id
        last.setdefault(other, m)

    # 2) 같은 스냅샷으로 안 읽은 개수
    unread: Dict[int, int] = {}
    for m in rows:
        if m.receiver_id == me and not m.is_read:
            unread[m.sender_id] = unread.get(m.sender_id, 0) + 1

    if not last:
        return []

    users = {u.id: u for u in db.query(User).filter(User.id.in_(list(last.keys()))).all()}

    out = []
    for other_id, m in last.items():
        u = users.get(other_id)
        if u is None:
            continue
        out.append(
            {
                "user": u,
                "last_message": m.text,
                "timestamp": as_utc(m.created_at),
                "unread_count": unread.get(other_id, 0),
                "_last_id": m.id,
            }
        )

    out.sort(key=lambda c: (c["timestamp"], c["_last_id"]), reverse=True)
    for c in out:
        c.pop("_last_id")
    return out


def get_chat_history(db: Session, *, me: int, other: int) -> List[dict]:
    _require_user(db, other)

    rows: List[Message] = (
        db.query(Message)
        .filter(
            or_(
                (Message.sender_id == me) & (Message.receiver_id == other),
                (Message.sender_id == other) & (Message.receiver_id == me),
            )
        )
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
    # 읽음 처리 전에 스냅샷을 확정
    snapshot = [serialize_message(m) for m in rows]
    unread_ids = [
        m["id"] for m in snapshot
        if m["sender_id"] == other and m["receiver_id"] == me and not m["is_read"]
    ]

    if unread_ids:
        db.execute(
            update(Message)
            .where(Message.id.in_(unread_ids), Message.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    return snapshot


def mark_conversation_read(db: Session, *, me: int, other: int) -> int:
    hw = _high_water(db)
    res = db.execute(
        update(Message)
        .where(
            Message.sender_id == other,
            Message.receiver_id == me,
            Message.is_read.is_(False),
            Message.id <= hw,
        )
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    updated = int(res.rowcount or 0)
    logger.debug("[chat] mark-read me=%s other=%s updated=%s", me, other, updated)
    return updated
