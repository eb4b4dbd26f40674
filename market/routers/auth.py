# market/routers/auth.py
"""
인증 / OTP 흐름
- register / login / me
- verify-otp / resend-otp           (가입 인증)
- change-email(/request)            (로그인 상태, 현재 이메일로 OTP)
- change-password(/request)         (로그인 상태)
- forgot-password(/verify) / reset-password  (비로그인, 이메일 기준)
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from market import crud, models, schemas
from market.config.feature_flags import FEATURE_FLAGS
from market.database import get_db
from market.errors import ConflictError, DeliveryFailedError, ForbiddenError, InvalidOTPError
from market.logic import otp as O
from market.logic.mailer import Mailer, get_mailer
from market.models import OTPPurpose
from market.security import get_current_user, get_password_hash, issue_session_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["🔐 Auth"])

FORGOT_PASSWORD_MESSAGE = "If this email exists, an OTP has been sent"
RESEND_OTP_MESSAGE = "If this account is pending verification, a new OTP has been sent"


def _token_out(user: models.User, message: str) -> schemas.TokenOut:
    return schemas.TokenOut(
        message=message,
        user_id=user.id,
        email=user.email,
        access_token=issue_session_token(user),
        user=schemas.UserOut.model_validate(user),
    )


# -----------------------------------------------------
# 가입 / 로그인
# -----------------------------------------------------
@router.post("/register", response_model=schemas.RegisterOut, status_code=status.HTTP_201_CREATED)
def register(
    body: schemas.RegisterIn,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    require_verification = bool(FEATURE_FLAGS.get("REQUIRE_EMAIL_VERIFICATION"))
    user = crud.create_user(db, body, verified=not require_verification)

    message = "Registration successful."
    if require_verification:
        O.issue_otp(db, user, OTPPurpose.VERIFICATION, mailer)
        message = "Registration successful. Please verify your email with the OTP sent."

    return schemas.RegisterOut(
        message=message,
        user_id=user.id,
        email=user.email,
        is_verified=user.is_verified,
    )


@router.post("/login", response_model=schemas.TokenOut)
def login(body: schemas.LoginIn, db: Session = Depends(get_db)):
    user = O.verify_credentials(db, body.email_or_phone, body.password)
    if FEATURE_FLAGS.get("REQUIRE_EMAIL_VERIFICATION") and not user.is_verified:
        raise ForbiddenError("Please verify your account first")
    return _token_out(user, "Login successful.")


@router.get("/me", response_model=schemas.UserOut)
def me(current_user: models.User = Depends(get_current_user)):
    return current_user


# -----------------------------------------------------
# 가입 인증 OTP
# -----------------------------------------------------
@router.post("/verify-otp", response_model=schemas.TokenOut)
def verify_otp(body: schemas.VerifyOTPIn, db: Session = Depends(get_db)):
    user = O.require_user(db, body.user_id)
    O.consume_otp(db, user, body.otp, OTPPurpose.VERIFICATION, {"is_verified": True})
    return _token_out(user, "OTP verified successfully")


@router.post("/resend-otp", response_model=schemas.MessageOut)
def resend_otp(
    body: schemas.UserIdIn,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """비로그인 엔드포인트: 계정 존재 여부/상태와 상관없이 항상 같은 응답"""
    user = db.get(models.User, body.user_id)
    if O.can_resend_verification(user):
        try:
            O.issue_otp(db, user, OTPPurpose.VERIFICATION, mailer)
        except DeliveryFailedError:
            logger.warning("[auth] resend-otp delivery failed user=%s", user.id)
    return schemas.MessageOut(message=RESEND_OTP_MESSAGE)


# -----------------------------------------------------
# 이메일 변경
# -----------------------------------------------------
@router.post("/change-email/request", response_model=schemas.OTPSentOut)
def request_email_change(
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    current_user: models.User = Depends(get_current_user),
):
    O.issue_otp(db, current_user, OTPPurpose.EMAIL_CHANGE, mailer)
    return schemas.OTPSentOut(message="Verification OTP sent to your current email", email=current_user.email)


@router.post("/change-email", response_model=schemas.TokenOut)
def change_email(
    body: schemas.ChangeEmailIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    new_email = body.new_email.lower()
    if crud.email_taken(db, new_email, exclude_user_id=current_user.id):
        raise ConflictError("Email already in use")

    user = O.consume_otp(db, current_user, body.otp, OTPPurpose.EMAIL_CHANGE, {"email": new_email})
    logger.info("[auth] email changed user=%s", user.id)
    return _token_out(user, "Email changed successfully")


# -----------------------------------------------------
# 비밀번호 변경 (로그인 상태)
# -----------------------------------------------------
@router.post("/change-password/request", response_model=schemas.OTPSentOut)
def request_password_change(
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
    current_user: models.User = Depends(get_current_user),
):
    O.issue_otp(db, current_user, OTPPurpose.PASSWORD_CHANGE, mailer)
    return schemas.OTPSentOut(message="Verification OTP sent to your email", email=current_user.email)


@router.post("/change-password", response_model=schemas.MessageOut)
def change_password(
    body: schemas.ChangePasswordIn,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    O.consume_otp(
        db, current_user, body.otp, OTPPurpose.PASSWORD_CHANGE,
        {"password_hash": get_password_hash(body.new_password)},
    )
    logger.info("[auth] password changed user=%s", current_user.id)
    return schemas.MessageOut(message="Password changed successfully")


# -----------------------------------------------------
# 비밀번호 찾기 (비로그인)
# -----------------------------------------------------
@router.post("/forgot-password", response_model=schemas.MessageOut)
def forgot_password(
    body: schemas.EmailIn,
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """가입 여부와 상관없이 항상 같은 응답"""
    user = crud.get_user_by_email(db, body.email)
    if user is not None:
        try:
            O.issue_otp(db, user, OTPPurpose.PASSWORD_RESET, mailer)
        except DeliveryFailedError:
            # OTP 는 issue_otp 안에서 이미 무효화됨. 응답은 바꾸지 않는다.
            logger.warning("[auth] forgot-password delivery failed user=%s", user.id)
    return schemas.MessageOut(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/forgot-password/verify", response_model=schemas.MessageOut)
def verify_forgot_password_otp(body: schemas.EmailOTPIn, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, body.email)
    if user is None:
        raise InvalidOTPError()
    O.check_otp(db, user, body.otp, OTPPurpose.PASSWORD_RESET)
    return schemas.MessageOut(message="OTP verified successfully")


@router.post("/reset-password", response_model=schemas.MessageOut)
def reset_password(body: schemas.ResetPasswordIn, db: Session = Depends(get_db)):
    user = crud.get_user_by_email(db, body.email)
    if user is None:
        raise InvalidOTPError()
    O.consume_otp(
        db, user, body.otp, OTPPurpose.PASSWORD_RESET,
        {"password_hash": get_password_hash(body.new_password)},
    )
    logger.info("[auth] password reset user=%s", user.id)
    return schemas.MessageOut(message="Password reset successfully")
