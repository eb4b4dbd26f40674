# market/logic/otp.py
"""
자격증명 / OTP 검증기.

OTP 전송 정책: "먼저 저장, 전송 실패 시 보상 무효화".
  1) code / expires_at / purpose 를 users 에 저장 + commit
  2) mailer.send_otp()
  3) 전송 실패 → 방금 발급한 code 가 아직 그대로일 때만 세 필드를 비우고
     DeliveryFailedError. (그 사이 새로 발급된 코드는 건드리지 않음)

소비(consume)는 조건부 UPDATE 한 번으로 처리:
  WHERE otp = :code AND otp_purpose = :purpose AND otp_expires_at > :now
→ 같은 코드로 동시에 두 번 들어와도 rowcount=1 은 한 쪽뿐.
"""
from __future__ import annotations

import hmac
import logging
import secrets
from typing import Any, Dict, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from market.config import project_rules as R
from market.config.time_policy import after, as_utc, now_utc, to_db
from market.errors import (
    ConflictError,
    DeliveryFailedError,
    ExpiredOTPError,
    InvalidCredentialError,
    InvalidOTPError,
    NotFoundError,
)
from market.logic.mailer import MailDeliveryError, Mailer
from market.models import OTPPurpose, User
from market.security import verify_password

logger = logging.getLogger(__name__)

_CLEARED = {"otp": None, "otp_expires_at": None, "otp_purpose": None}


def generate_otp() -> str:
    """6자리 숫자 (앞자리 0 없음)."""
    low = 10 ** (R.OTP_LENGTH - 1)
    return str(low + secrets.randbelow(9 * low))


# ---------------------------------------------------------------------
# 자격증명
# ---------------------------------------------------------------------
def find_user_by_identifier(db: Session, identifier: str) -> Optional[User]:
    ident = (identifier or "").strip()
    if not ident:
        return None
    return (
        db.query(User)
        .filter(or_(User.email == ident.lower(), User.phone == ident))
        .first()
    )


def verify_credentials(db: Session, identifier: str, password: str) -> User:
    user = find_user_by_identifier(db, identifier)
    # 존재하지 않는 계정과 비밀번호 불일치는 같은 에러
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentialError()
    return user


def require_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


# ---------------------------------------------------------------------
# 발급
# ---------------------------------------------------------------------
def issue_otp(db: Session, user: User, purpose: OTPPurpose, mailer: Mailer) -> str:
    code = generate_otp()
    expires_at = after(minutes=R.OTP_TTL_MINUTES)

    user.otp = code
    user.otp_expires_at = to_db(expires_at)
    user.otp_purpose = purpose.value
    db.add(user)
    db.commit()

    try:
        mailer.send_otp(user.email, code, purpose)
    except MailDeliveryError as e:
        logger.error("[otp] delivery failed user=%s purpose=%s: %s", user.id, purpose.value, e)
        _invalidate_issued(db, user.id, code)
        raise DeliveryFailedError() from e

    logger.info("[otp] issued user=%s purpose=%s", user.id, purpose.value)
    return code


def can_resend_verification(user: Optional[User]) -> bool:
    """
    가입 인증 코드 재발송 가능 여부.
    이미 인증됐거나 다른 용도(비밀번호 재설정 등)의 코드가 대기 중이면 덮어쓰지 않는다.
    """
    if user is None or user.is_verified:
        return False
    return user.otp is None or user.otp_purpose == OTPPurpose.VERIFICATION.value


def _invalidate_issued(db: Session, user_id: int, code: str) -> None:
    db.execute(
        update(User)
        .where(User.id == user_id, User.otp == code)
        .values(**_CLEARED)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.expire_all()


# ---------------------------------------------------------------------
# 검증 / 소비
# ---------------------------------------------------------------------
def check_otp(db: Session, user: User, code: str, purpose: OTPPurpose) -> None:
    """저장된 OTP 와 비교만 하고 소비하지는 않는다."""
    db.refresh(user)
    stored = user.otp
    # bytes 로 비교 (str 비교는 non-ASCII 입력에서 TypeError)
    if not stored or not code or not hmac.compare_digest(stored.encode(), str(code).encode()):
        raise InvalidOTPError()
    if user.otp_purpose != purpose.value:
        raise InvalidOTPError()

    expires_at = as_utc(user.otp_expires_at)
    if expires_at is None or expires_at <= now_utc():
        raise ExpiredOTPError()


def consume_otp(
    db: Session,
    user: User,
    code: str,
    purpose: OTPPurpose,
    changes: Optional[Dict[str, Any]] = None,
) -> User:
    """
    OTP 검증 + (changes 적용 & OTP 필드 초기화) 를 한 UPDATE 로 커밋.
    changes 는 OTP 가 막고 있던 상태 변경 (is_verified / password_hash / email).
    """
    check_otp(db, user, code, purpose)

    values = dict(changes or {})
    values.update(_CLEARED)
    stmt = (
        update(User)
        .where(
            User.id == user.id,
            User.otp == str(code),
            User.otp_purpose == purpose.value,
            User.otp_expires_at > to_db(),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    try:
        res = db.execute(stmt)
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already in use")

    if res.rowcount != 1:
        # 검증과 UPDATE 사이에 다른 요청이 먼저 소비했거나 재발급됨
        db.rollback()
        raise InvalidOTPError()

    db.commit()
    db.refresh(user)
    logger.info("[otp] consumed user=%s purpose=%s", user.id, purpose.value)
    return user
