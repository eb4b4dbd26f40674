# market/config/time_policy.py
# 중앙 집중형 시간 유틸
# - 모든 비교/계산은 timezone-aware UTC 기준
# - DB 컬럼은 naive UTC 로 저장 (SQLite/Postgres 양쪽에서 같은 의미가 되도록)

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

UTC = timezone.utc

# 테스트/진단에서 현재시각을 고정하기 위한 오버라이드 저장소
_TEST_NOW_UTC: datetime | None = None


def set_now_utc_for_testing(dt: datetime | None) -> None:
    """
    dt가 None이면 오버라이드 해제. dt가 naive면 UTC로 간주.
    """
    global _TEST_NOW_UTC
    if dt is None:
        _TEST_NOW_UTC = None
    else:
        _TEST_NOW_UTC = dt if dt.tzinfo else dt.replace(tzinfo=UTC)


def now_utc() -> datetime:
    """
    서비스 전체에서 사용하는 UTC now. 테스트 중이면 고정값을 반환.
    """
    if _TEST_NOW_UTC is not None:
        return _TEST_NOW_UTC
    return datetime.now(UTC)


def ensure_aware_utc(dt: datetime) -> datetime:
    """naive면 UTC로 붙여서 반환, aware면 그대로 UTC로 변환."""
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt.astimezone(UTC)


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return ensure_aware_utc(dt)


def to_db(dt: Optional[datetime] = None) -> datetime:
    """DB 저장/비교용 naive UTC. 인자가 없으면 now_utc() 기준."""
    base = now_utc() if dt is None else ensure_aware_utc(dt)
    return base.replace(tzinfo=None)


def after(*, minutes: float = 0, days: float = 0, base: Optional[datetime] = None) -> datetime:
    start = base or now_utc()
    return ensure_aware_utc(start) + timedelta(minutes=minutes, days=days)
