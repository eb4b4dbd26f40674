# market/logic/mailer.py
"""
OTP 메일 전송 핸들.

- 프로세스 시작 시 build_mailer() 로 만들어 app.state.mailer 에 올리고
  shutdown 때 close() 한다. (모듈 전역 transporter 없음)
- send_otp() 는 전송 실패 시 MailDeliveryError 를 던진다.
  OTP 상태 정리는 호출하는 쪽(logic/otp.py)의 책임.
"""
from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Tuple

from fastapi import Request

from market.config import settings
from market.config import project_rules as R
from market.models import OTPPurpose

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    pass


# -------------------------------------------------------
# 메일 템플릿 (용도별 제목/문구)
# -------------------------------------------------------
_SUBJECTS = {
    OTPPurpose.VERIFICATION: ("Verify Your Account", "Your verification code is"),
    OTPPurpose.PASSWORD_RESET: ("Password Reset OTP", "Your password reset code is"),
    OTPPurpose.PASSWORD_CHANGE: (
        "Verify Password Change",
        "You requested to change your password. Your verification code is",
    ),
    OTPPurpose.EMAIL_CHANGE: (
        "Verify Email Change",
        "You requested to change your email address. Your verification code is",
    ),
}


def render_otp_email(otp: str, purpose: OTPPurpose) -> Tuple[str, str, str]:
    """(subject, text, html)"""
    subject, lead = _SUBJECTS.get(purpose, ("Verification OTP", "Your verification code is"))
    ttl = R.OTP_TTL_MINUTES
    text = f"{lead}: {otp}. This code will expire in {ttl} minutes."
    html = f"""\
<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px; background-color: #fff9f0;">
      <h1 style="text-align: center; color: #b45309;">{settings.MAIL_FROM_NAME}</h1>
      <h2>Hello!</h2>
      <p>{lead}: <strong>{otp}</strong>. This code will expire in {ttl} minutes.</p>
      <div style="font-size: 32px; font-weight: bold; text-align: center; letter-spacing: 8px; color: #d97706;">{otp}</div>
      <p>If you didn't request this code, please ignore this email.</p>
      <p>For security reasons, do not share this code with anyone.</p>
    </div>
  </body>
</html>
"""
    return subject, text, html


# -------------------------------------------------------
# 전송 백엔드
# -------------------------------------------------------
class Mailer:
    """인터페이스 겸 기본 구현(아무것도 안 함)."""

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def send(self, to_email: str, subject: str, text: str, html: str) -> None:
        raise NotImplementedError

    def send_otp(self, to_email: str, otp: str, purpose: OTPPurpose) -> None:
        subject, text, html = render_otp_email(otp, purpose)
        self.send(to_email, subject, text, html)


class SMTPMailer(Mailer):
    def __init__(
        self,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        sender: str = "",
        sender_name: str = "",
        timeout: int = 10,
        use_starttls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.sender_name = sender_name
        self.timeout = timeout
        self.use_starttls = use_starttls
        self._closed = True

    def _connect(self) -> smtplib.SMTP:
        conn = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if self.use_starttls:
                conn.starttls()
            if self.username:
                conn.login(self.username, self.password)
        except (smtplib.SMTPException, OSError):
            # 핸드셰이크/로그인 실패 시 열린 소켓 정리
            conn.close()
            raise
        return conn

    def open(self) -> None:
        """
        startup 시 접속 확인. 실패해도 서버는 뜨고, 로그만 남긴다.
        (실제 전송은 메시지마다 새 커넥션을 연다)
        """
        self._closed = False
        try:
            conn = self._connect()
            conn.noop()
            conn.quit()
            logger.info("[mail] SMTP server %s:%s is ready", self.host, self.port)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("[mail] SMTP check failed: %s", e)

    def close(self) -> None:
        self._closed = True

    def send(self, to_email: str, subject: str, text: str, html: str) -> None:
        if self._closed:
            raise MailDeliveryError("mailer is closed")

        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self.sender_name, self.sender)) if self.sender_name else self.sender
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))

        try:
            with self._connect() as conn:
                conn.sendmail(self.sender, [to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"failed to send mail to {to_email}: {e}") from e


class ConsoleMailer(Mailer):
    """개발용: 메일 대신 로그로 출력."""

    def send(self, to_email: str, subject: str, text: str, html: str) -> None:
        logger.info("[mail:console] to=%s subject=%s body=%s", to_email, subject, text)


def build_mailer() -> Mailer:
    if settings.MAIL_BACKEND == "smtp":
        return SMTPMailer(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            sender=settings.MAIL_FROM,
            sender_name=settings.MAIL_FROM_NAME,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
        )
    return ConsoleMailer()


# -------------------------------------------------------
# FastAPI dependency
# -------------------------------------------------------
def get_mailer(request: Request) -> Mailer:
    mailer = getattr(request.app.state, "mailer", None)
    if mailer is None:
        # lifespan 없이 띄운 경우(TestClient 직접 생성 등)
        mailer = build_mailer()
        mailer.open()
        request.app.state.mailer = mailer
    return mailer
