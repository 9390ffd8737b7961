# backend/app/main.py
"""
FastAPI application for the market data stream and AI strategy signals.

Run with:
    uvicorn app.main:app --port 8000   (from the backend/ directory)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.analysis.service import AnalysisService
from app.api.routes import router, ws_router
from app.config.settings import settings
from app.db.session import AsyncSessionLocal, create_all
from app.db.storage import MarketStore
from app.feed.hub import FanoutHub
from app.feed.poller import PollingRefresher
from app.feed.upstream import UpstreamFeedClient
from app.jobs.analysis import AnalysisScheduler

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting market data backend...")
    await create_all()

    store = MarketStore(AsyncSessionLocal)
    hub = FanoutHub()
    feed = UpstreamFeedClient(store, hub, settings.binance)
    poller = PollingRefresher(store, settings.binance)
    analysis = AnalysisService(store, settings.analysis)
    scheduler = AnalysisScheduler(analysis, settings.analysis)

    app.state.store = store
    app.state.hub = hub
    app.state.feed = feed
    app.state.poller = poller
    app.state.analysis = analysis
    app.state.scheduler = scheduler

    feed.initialize()
    await poller.initialize()
    scheduler.initialize()
    logger.info("Market data backend started")

    yield

    logger.info("Shutting down market data backend...")
    scheduler.stop()
    poller.stop()
    await feed.stop()
    logger.info("Market data backend shutdown complete")


app = FastAPI(title="Marketdesk API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred"},
    )


app.include_router(router)
app.include_router(ws_router)
