# market/security.py
# 비밀번호 해싱 + JWT 세션 발급/검증

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from market import models
from market.config import settings
from market.config import project_rules as R
from market.database import get_db
from market.errors import UnauthenticatedError

# -----------------------------------------------------
# 🔧 기본 설정
# -----------------------------------------------------
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

# -----------------------------------------------------
# 🔑 비밀번호 해싱 관련
# -----------------------------------------------------
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)


def _clip(password: str) -> str:
    return password.encode("utf-8")[: R.PASSWORD_HASH_MAX_BYTES].decode("utf-8", "ignore")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(_clip(plain_password), hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(_clip(password))


# -----------------------------------------------------
# 🪙 OAuth2 스키마 (Swagger Authorize와 연결)
# -----------------------------------------------------
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


# -----------------------------------------------------
# 🧾 JWT 생성 (로그인 / OTP 인증 성공 시)
# -----------------------------------------------------
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    # jose 는 실제 시계로 exp 를 검사하므로 테스트 오버라이드 시각을 쓰지 않는다
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def issue_session_token(user: models.User) -> str:
    return create_access_token({"sub": str(user.id)})


def decode_user_id(token: str) -> int:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise UnauthenticatedError("Invalid token")

    sub = payload.get("sub")
    if sub is None:
        raise UnauthenticatedError("Invalid token payload")
    try:
        return int(sub)
    except (TypeError, ValueError):
        raise UnauthenticatedError("Invalid token payload")


# -----------------------------------------------------
# 👤 현재 로그인한 유저 확인
# -----------------------------------------------------
def get_current_user(
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
) -> models.User:
    if not token:
        raise UnauthenticatedError("Not authenticated (token missing)")

    user_id = decode_user_id(token)
    user = db.get(models.User, user_id)
    if user is None:
        raise UnauthenticatedError("User not found")
    return user
