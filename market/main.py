# market/main.py
from __future__ import annotations

import asyncio
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from market.config import project_rules as R
from market.config import settings
from market.config.feature_flags import FEATURE_FLAGS
from market.database import Base, dispose_engine, engine
from market.errors import MarketError
from market.logic import bidding
from market.logic.mailer import build_mailer
from market.routers import auth, chat, items, reviews

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


# --------------------------------------------------
# 만료 경매 정산 워커
# --------------------------------------------------
async def auction_settlement_worker() -> None:
    """
    - 다음 경매 마감 시각까지 기다렸다가 settle_expired_auctions() 실행
    - 대기는 최대 AUCTION_SWEEP_MAX_SLEEP_SECONDS (그 사이 새 경매가 생겨도 놓치지 않도록)
    - DB 작업은 스레드로 넘겨서 이벤트 루프를 막지 않는다
    """
    while True:
        try:
            delay = await asyncio.to_thread(
                bidding.seconds_until_next_sweep, R.AUCTION_SWEEP_MAX_SLEEP_SECONDS
            )
            await asyncio.sleep(delay)

            settled = await asyncio.to_thread(bidding.run_settlement_sweep)
            if settled:
                logger.info("[AUTO_SETTLE] settled=%s", settled)

        except asyncio.CancelledError:
            raise
        except Exception:
            # 에러가 나도 워커가 멈추지 않도록
            logger.exception("[AUTO_SETTLE] error")
            await asyncio.sleep(R.AUCTION_SWEEP_ERROR_BACKOFF_SECONDS)


# Lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    # startup 역할
    Base.metadata.create_all(bind=engine)

    mailer = build_mailer()
    mailer.open()
    app.state.mailer = mailer

    worker = None
    if FEATURE_FLAGS.get("AUTO_SETTLE_AUCTIONS"):
        worker = asyncio.create_task(auction_settlement_worker())

    yield

    # shutdown 역할
    if worker is not None:
        worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            pass
    mailer.close()
    app.state.mailer = None
    dispose_engine()


app = FastAPI(title="Vintage Market API", version=APP_VERSION, lifespan=lifespan)


# 예외 핸들러
@app.exception_handler(MarketError)
async def market_error_handler(request: Request, exc: MarketError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=headers)


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    if settings.DEV_DEBUG_ERRORS:
        tb_tail = traceback.format_exc().splitlines()[-1]
        return JSONResponse(
            status_code=500,
            content={
                "detail": {
                    "error": exc.__class__.__name__,
                    "msg": str(exc),
                    "where": f"{request.method} {request.url.path}",
                    "trace_tail": tb_tail,
                }
            },
        )
    return JSONResponse(status_code=500, content={"detail": "Internal error"})


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(auth.router)
app.include_router(items.router)
app.include_router(chat.router)
app.include_router(reviews.router)


@app.get("/")
def root():
    return {"message": "Vintage Market API is running"}


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/version")
def version():
    return {"version": APP_VERSION}
