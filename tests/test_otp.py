# tests/test_otp.py
from datetime import timedelta

import pytest

from helpers import RecordingMailer, make_user
from market.config import project_rules as R
from market.config.time_policy import now_utc
from market.errors import (
    DeliveryFailedError,
    ExpiredOTPError,
    InvalidCredentialError,
    InvalidOTPError,
)
from market.logic import otp as O
from market.models import OTPPurpose
from market.security import get_password_hash, verify_password


def test_generated_code_is_six_digits():
    for _ in range(200):
        code = O.generate_otp()
        assert len(code) == R.OTP_LENGTH
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_issue_persists_and_sends(db):
    user = make_user(db, "alice", verified=False)
    mailer = RecordingMailer()

    code = O.issue_otp(db, user, OTPPurpose.VERIFICATION, mailer)

    db.refresh(user)
    assert user.otp == code
    assert user.otp_purpose == "verification"
    assert mailer.last_otp("alice@example.com") == code
    assert mailer.outbox[-1]["subject"] == "Verify Your Account"


def test_consume_fresh_code_once_then_replay_fails(db):
    user = make_user(db, "alice", verified=False)
    code = O.issue_otp(db, user, OTPPurpose.VERIFICATION, RecordingMailer())

    O.consume_otp(db, user, code, OTPPurpose.VERIFICATION, {"is_verified": True})
    db.refresh(user)
    assert user.is_verified is True
    assert user.otp is None and user.otp_expires_at is None and user.otp_purpose is None

    with pytest.raises(InvalidOTPError):
        O.consume_otp(db, user, code, OTPPurpose.VERIFICATION, {"is_verified": True})


def test_correct_but_expired_code(db):
    user = make_user(db, "alice", verified=False)
    code = O.issue_otp(db, user, OTPPurpose.VERIFICATION, RecordingMailer())

    R.set_test_now_utc(now_utc() + timedelta(minutes=R.OTP_TTL_MINUTES, seconds=1))
    with pytest.raises(ExpiredOTPError):
        O.consume_otp(db, user, code, OTPPurpose.VERIFICATION, {"is_verified": True})

    db.refresh(user)
    assert user.is_verified is False


def test_wrong_code_is_invalid_even_when_expired(db):
    user = make_user(db, "alice")
    code = O.issue_otp(db, user, OTPPurpose.PASSWORD_CHANGE, RecordingMailer())
    wrong = "000000" if code != "000000" else "111111"

    R.set_test_now_utc(now_utc() + timedelta(hours=1))
    with pytest.raises(InvalidOTPError):
        O.check_otp(db, user, wrong, OTPPurpose.PASSWORD_CHANGE)


def test_purpose_mismatch_is_invalid(db):
    user = make_user(db, "alice")
    code = O.issue_otp(db, user, OTPPurpose.PASSWORD_RESET, RecordingMailer())

    with pytest.raises(InvalidOTPError):
        O.consume_otp(db, user, code, OTPPurpose.EMAIL_CHANGE, {"email": "new@example.com"})

    db.refresh(user)
    assert user.email == "alice@example.com"
    assert user.otp == code


def test_no_pending_code_is_invalid(db):
    user = make_user(db, "alice")
    with pytest.raises(InvalidOTPError):
        O.check_otp(db, user, "123456", OTPPurpose.VERIFICATION)


def test_reissue_replaces_previous_code(db):
    user = make_user(db, "alice")
    mailer = RecordingMailer()
    first = O.issue_otp(db, user, OTPPurpose.PASSWORD_CHANGE, mailer)
    second = O.issue_otp(db, user, OTPPurpose.PASSWORD_CHANGE, mailer)
    if first == second:
        pytest.skip("random codes collided")

    with pytest.raises(InvalidOTPError):
        O.check_otp(db, user, first, OTPPurpose.PASSWORD_CHANGE)
    O.check_otp(db, user, second, OTPPurpose.PASSWORD_CHANGE)


def test_delivery_failure_invalidates_pending_code(db):
    user = make_user(db, "alice")

    with pytest.raises(DeliveryFailedError):
        O.issue_otp(db, user, OTPPurpose.PASSWORD_RESET, RecordingMailer(fail=True))

    db.refresh(user)
    assert user.otp is None
    assert user.otp_expires_at is None
    assert user.otp_purpose is None


def test_check_does_not_consume(db):
    user = make_user(db, "alice")
    code = O.issue_otp(db, user, OTPPurpose.PASSWORD_RESET, RecordingMailer())

    O.check_otp(db, user, code, OTPPurpose.PASSWORD_RESET)
    O.check_otp(db, user, code, OTPPurpose.PASSWORD_RESET)
    db.refresh(user)
    assert user.otp == code


def test_credentials_by_email_or_phone(db):
    user = make_user(db, "alice", phone="010-1111-2222", password="hunter22")

    assert O.verify_credentials(db, "alice@example.com", "hunter22").id == user.id
    assert O.verify_credentials(db, "ALICE@example.com", "hunter22").id == user.id
    assert O.verify_credentials(db, "010-1111-2222", "hunter22").id == user.id

    with pytest.raises(InvalidCredentialError):
        O.verify_credentials(db, "alice@example.com", "wrong-password")
    with pytest.raises(InvalidCredentialError):
        O.verify_credentials(db, "nobody@example.com", "hunter22")


def test_password_change_is_applied_with_consumption(db):
    user = make_user(db, "alice", password="oldpass1")
    code = O.issue_otp(db, user, OTPPurpose.PASSWORD_CHANGE, RecordingMailer())

    O.consume_otp(db, user, code, OTPPurpose.PASSWORD_CHANGE, {"password_hash": get_password_hash("newpass1")})
    db.refresh(user)
    assert verify_password("newpass1", user.password_hash)
    assert not verify_password("oldpass1", user.password_hash)


def test_non_ascii_code_is_invalid(db):
    user = make_user(db, "alice")
    O.issue_otp(db, user, OTPPurpose.PASSWORD_RESET, RecordingMailer())

    with pytest.raises(InvalidOTPError):
        O.check_otp(db, user, "é12345", OTPPurpose.PASSWORD_RESET)


def test_can_resend_verification(db):
    pending = make_user(db, "alice", verified=False)
    done = make_user(db, "bob")

    assert O.can_resend_verification(None) is False
    assert O.can_resend_verification(done) is False
    assert O.can_resend_verification(pending) is True

    O.issue_otp(db, pending, OTPPurpose.PASSWORD_RESET, RecordingMailer())
    assert O.can_resend_verification(pending) is False
