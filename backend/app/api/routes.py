import re

from fastapi import APIRouter, HTTPException, Request, WebSocket, status

from app.config.settings import settings
from app.feed.connection import ClientConnectionManager
from app.schemas.strategy import AnalyzeRequest

router = APIRouter(prefix="/api")
ws_router = APIRouter()
_SYMBOL_RE = re.compile(r"^[A-Z0-9]{2,20}$")


def _normalize_symbol(symbol: str) -> str:
    cleaned = symbol.strip().upper()
    if not _SYMBOL_RE.match(cleaned):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "symbol must be 2-20 letters or digits, e.g. BTCUSDT."},
        )
    return cleaned


@router.get("/health")
def health(request: Request) -> dict:
    state = request.app.state
    feed = state.feed
    return {
        "status": "degraded" if feed.failed else "ok",
        "feed": {
            "connected": feed.connected,
            "failed": feed.failed,
            "reconnect_attempts": feed.reconnect_attempts,
        },
        "subscribers": state.hub.subscriber_count,
        "poller_running": state.poller.running,
        "analysis_running": state.scheduler.running,
    }


@router.get("/market-data")
async def list_market_data(request: Request) -> list[dict]:
    snapshots = await request.app.state.store.get_market_data()
    return [snapshot.to_message() for snapshot in snapshots]


@router.get("/market-data/{symbol}")
async def get_market_data(symbol: str, request: Request) -> dict:
    normalized = _normalize_symbol(symbol)
    snapshot = await request.app.state.store.get_market_data_by_symbol(normalized)
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found.")
    return snapshot.to_message()


@router.get("/ai-strategies")
async def list_ai_strategies(request: Request) -> list[dict]:
    records = await request.app.state.store.get_active_strategies()
    return [record.to_message() for record in records]


@router.post("/ai/analyze")
async def analyze_endpoint(payload: AnalyzeRequest, request: Request) -> dict:
    symbol = _normalize_symbol(payload.symbol)
    record = await request.app.state.analysis.analyze_and_record(symbol, payload.timeframe)
    return record.to_message()


@ws_router.websocket("/ws")
async def market_stream(websocket: WebSocket) -> None:
    state = websocket.app.state
    connection = ClientConnectionManager(
        websocket,
        state.store,
        state.hub,
        queue_size=settings.stream.client_queue_size,
    )
    await connection.serve()
