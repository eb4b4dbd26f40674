# market/config/project_rules.py
# 도메인 상수 (OTP / 경매 / 리뷰 / 비밀번호)
from __future__ import annotations

from datetime import datetime
from typing import Optional

from market.config.time_policy import set_now_utc_for_testing as _set_now_utc_for_testing

# ---------------- OTP ----------------
OTP_LENGTH = 6
OTP_TTL_MINUTES = 10

# ---------------- 계정 ----------------
PASSWORD_MIN_LENGTH = 6
# bcrypt 는 72바이트 이후를 무시하므로 해싱 전에 잘라서 넣는다
PASSWORD_HASH_MAX_BYTES = 72

# ---------------- 경매 ----------------
DEFAULT_BID_INCREMENT = 1000
DEFAULT_AUCTION_DURATION_DAYS = 7
MAX_AUCTION_DURATION_DAYS = 30

# 정산 워커: 다음 마감까지 기다리되 최대 이 시간마다 한 번은 스윕
AUCTION_SWEEP_MAX_SLEEP_SECONDS = 60
# 워커 에러 시 재시도 대기
AUCTION_SWEEP_ERROR_BACKOFF_SECONDS = 30

# ---------------- 리뷰 ----------------
RATING_MIN = 1
RATING_MAX = 5
REVIEW_COMMENT_MAX = 500

# ---------------- 채팅 ----------------
MESSAGE_MAX_LENGTH = 5000

# ---------------- 이미지 ----------------
DEFAULT_IMAGE_CONTENT_TYPE = "image/jpeg"
MAX_IMAGES_PER_ITEM = 10


# ---------------- 테스트 후크 ----------------
def set_test_now_utc(dt: Optional[datetime]) -> None:
    """테스트용 현재시각 오버라이드(퍼블릭). None이면 해제."""
    _set_now_utc_for_testing(dt)
