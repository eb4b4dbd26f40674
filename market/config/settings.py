# market/config/settings.py
# 환경변수 기반 런타임 설정 (DB / 토큰 / 메일 / 로그)
import os


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./market.db")

# --- 토큰 ---
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
# 원본 서비스와 동일하게 30일
ACCESS_TOKEN_EXPIRE_MINUTES = _int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 30)
BCRYPT_ROUNDS = _int("BCRYPT_ROUNDS", 12)

# --- 메일 ---
# smtp | console  (SMTP_HOST 가 비어 있으면 console)
MAIL_BACKEND = os.getenv("MAIL_BACKEND", "smtp" if os.getenv("SMTP_HOST") else "console")
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = _int("SMTP_PORT", 587)
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_TIMEOUT_SECONDS = _int("SMTP_TIMEOUT_SECONDS", 10)
MAIL_FROM = os.getenv("MAIL_FROM", SMTP_USER or "no-reply@vintage-market.local")
MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "Vintage Marketplace")

# --- 로그 / 에러 ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DEV_DEBUG_ERRORS = os.getenv("DEV_DEBUG_ERRORS", "").lower() in {"1", "true", "yes"}

# --- CORS ---
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
