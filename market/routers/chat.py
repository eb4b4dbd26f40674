# market/routers/chat.py
# 1:1 채팅 (폴링 방식, 실시간 푸시 없음)
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from market import models, schemas
from market.database import get_db
from market.logic import conversations as C
from market.security import get_current_user

router = APIRouter(prefix="/chat", tags=["💬 Chat"])


@router.post("/send", response_model=schemas.ChatSentOut, status_code=status.HTTP_201_CREATED)
def send_message(
    body: schemas.ChatSendIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    msg = C.send_message(db, sender_id=current_user.id, receiver_id=body.receiver_id, text=body.message)
    return schemas.ChatSentOut(
        message="Message sent successfully",
        chat=schemas.ChatMessageOut.model_validate(C.serialize_message(msg)),
    )


@router.get("", response_model=schemas.ConversationListOut)
def list_conversations(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    rows = C.list_conversations(db, me=current_user.id)
    return schemas.ConversationListOut(
        conversations=[
            schemas.ConversationOut(
                user=schemas.UserBrief.model_validate(r["user"]),
                last_message=r["last_message"],
                timestamp=r["timestamp"],
                unread_count=r["unread_count"],
            )
            for r in rows
        ]
    )


@router.get("/{user_id}", response_model=schemas.ChatHistoryOut)
def get_chat_history(
    user_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    messages = C.get_chat_history(db, me=current_user.id, other=user_id)
    return schemas.ChatHistoryOut(
        messages=[schemas.ChatMessageOut.model_validate(m) for m in messages]
    )


@router.put("/{user_id}/mark-read", response_model=schemas.MarkReadOut)
def mark_read(
    user_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    updated = C.mark_conversation_read(db, me=current_user.id, other=user_id)
    return schemas.MarkReadOut(message="Messages marked as read", updated=updated)
