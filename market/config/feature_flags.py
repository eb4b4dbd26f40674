# market/config/feature_flags.py
# Vintage Market Feature Flags
import os


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


FEATURE_FLAGS = {
    # 가입 즉시 verified 처리 (False) / 가입 시 인증 OTP 발송 후 verify-otp 필요 (True)
    "REQUIRE_EMAIL_VERIFICATION": _flag("REQUIRE_EMAIL_VERIFICATION", False),
    # 만료 경매 자동 정산 워커 + 조회 시점 lazy 정산
    "AUTO_SETTLE_AUCTIONS": _flag("AUTO_SETTLE_AUCTIONS", True),
}
