# market/errors.py
# 도메인 예외 → HTTP 상태 매핑은 각 클래스의 status_code 로 결정
# (main.py 의 exception handler 가 한 곳에서 변환)
from __future__ import annotations

from typing import Any, Dict


class MarketError(Exception):
    status_code = 500
    default_detail = "Internal error"

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail

    def to_body(self) -> Dict[str, Any]:
        return {"detail": self.detail}


# ---------------------------------------------------------------------
# 400 / 404 / 403 / 401
# ---------------------------------------------------------------------
class ValidationError(MarketError):
    status_code = 400
    default_detail = "Invalid input"


class NotFoundError(MarketError):
    status_code = 404
    default_detail = "Not found"


class ForbiddenError(MarketError):
    status_code = 403
    default_detail = "Not authorized"


class UnauthenticatedError(MarketError):
    status_code = 401
    default_detail = "Not authenticated"


# ---------------------------------------------------------------------
# Conflict (중복/상태 충돌). 프런트 호환을 위해 400 으로 내려준다.
# ---------------------------------------------------------------------
class ConflictError(MarketError):
    status_code = 400
    default_detail = "Conflict"


class InvalidStateError(ConflictError):
    default_detail = "Invalid state for this action"


class AuctionClosedError(ConflictError):
    default_detail = "This auction is not active"


class BidTooLowError(ConflictError):
    def __init__(self, minimum_bid: int, bid_increment: int):
        super().__init__(f"Bid must be at least {minimum_bid}")
        self.minimum_bid = minimum_bid
        self.bid_increment = bid_increment

    def to_body(self) -> Dict[str, Any]:
        return {
            "detail": self.detail,
            "minimumBid": self.minimum_bid,
            "bidIncrement": self.bid_increment,
        }


class DuplicateReviewError(ConflictError):
    default_detail = "You have already reviewed this seller for this item"


class SelfReviewForbiddenError(ForbiddenError):
    default_detail = "You cannot review your own listing"


# ---------------------------------------------------------------------
# 인증 / OTP
# ---------------------------------------------------------------------
class AuthError(MarketError):
    status_code = 401
    default_detail = "Authentication failed"


class InvalidCredentialError(AuthError):
    default_detail = "Invalid credentials"


class InvalidOTPError(AuthError):
    default_detail = "Invalid OTP"


class ExpiredOTPError(AuthError):
    default_detail = "OTP has expired"


class DeliveryFailedError(MarketError):
    """메일 전송 실패. OTP 상태 오류와 구분해서 내려준다."""
    status_code = 502
    default_detail = "Failed to send OTP email"
