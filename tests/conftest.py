# tests/conftest.py
import os
import tempfile

# market 모듈 임포트 전에 테스트 DB / 빠른 bcrypt 로 고정
_TMP_DIR = tempfile.mkdtemp(prefix="market-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/test.db"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["MAIL_BACKEND"] = "console"
os.environ.pop("REQUIRE_EMAIL_VERIFICATION", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from helpers import RecordingMailer  # noqa: E402
from market.config import project_rules as R  # noqa: E402
from market.database import Base, SessionLocal, engine  # noqa: E402
from market.logic.mailer import get_mailer  # noqa: E402
from market.main import app  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_db():
    R.set_test_now_utc(None)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    R.set_test_now_utc(None)
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer():
    m = RecordingMailer()
    app.dependency_overrides[get_mailer] = lambda: m
    return m


@pytest.fixture
def client(mailer):
    return TestClient(app)
