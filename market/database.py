# market/database.py
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from market.config import settings

DATABASE_URL = settings.DATABASE_URL

# SQLite 전용 옵션 (다른 DB에서는 불필요)
IS_SQLITE = DATABASE_URL.startswith("sqlite")
connect_args = {"check_same_thread": False} if IS_SQLITE else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,
)

if IS_SQLITE:
    # SQLite 는 커넥션마다 FK 를 켜야 ON DELETE CASCADE / SET NULL 이 동작한다
    @event.listens_for(engine, "connect")
    def _sqlite_pragma(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys = ON;")
        cur.close()


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def dispose_engine() -> None:
    """shutdown 시 커넥션 풀 정리."""
    engine.dispose()
