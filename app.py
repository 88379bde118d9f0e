"""
DNSジェネレーター - メインサーバー
FastAPIによるWebサーバー。ロケーション選択・アドレス生成のREST APIと、
レート制限通知用のWebSocketを提供する。
"""

import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from address_space import range_details
from config import settings
from errors import ActionBlocked, CIDRError, NoLocationSelected, UnknownLocation
from location_lookup import enrich, lookup_country
from locations import DEFAULT_AVAILABLE_IPV6, format_large_number, load_locations
from notifier import Notifier
from rate_limiter import RateLimiter
from session import GeneratorSession

logger = logging.getLogger(__name__)

VERSIONS = {"ipv4": 4, "ipv6": 6}
RATE_LIMIT_MESSAGE = f"操作が多すぎます。{settings.RATE_LIMIT_COOLDOWN_SECONDS:.0f}秒待ってください。"


def _catalog_source(source: str) -> str:
    """相対パスはこのファイルのディレクトリ基準で解決する"""
    if source.startswith(("http://", "https://")) or os.path.isabs(source):
        return source
    return os.path.join(os.path.dirname(__file__), source)


# ========== ライフサイクル管理 ==========

@asynccontextmanager
async def lifespan(app: FastAPI):
    """アプリケーション起動・終了時の処理"""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    locations = await load_locations(_catalog_source(settings.LOCATIONS_SOURCE))

    notifier = Notifier()
    limiter = RateLimiter(
        window=settings.RATE_LIMIT_WINDOW_SECONDS,
        threshold=settings.RATE_LIMIT_THRESHOLD,
        cooldown=settings.RATE_LIMIT_COOLDOWN_SECONDS,
    )
    limiter.add_listener(notifier.rate_limit_listener)

    session = GeneratorSession(locations, limiter, batch_size=settings.BATCH_SIZE)
    session.select_random()

    app.state.session = session
    app.state.notifier = notifier
    app.state.lookup = lookup_country
    logger.info("%s started with %d locations", settings.APP_NAME, len(locations))
    yield


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)


# ========== リクエストモデル ==========

class SelectLocationRequest(BaseModel):
    """ロケーション選択リクエスト"""
    location_id: str


class CopyRequest(BaseModel):
    """コピー操作リクエスト"""
    address: str


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _location_details(location) -> dict:
    """選択中ロケーションの表示用情報"""
    details = []
    for cidr in location.ipv4_ranges():
        try:
            details.append(range_details(cidr))
        except CIDRError as e:
            logger.warning("Error calculating range for CIDR %r: %s", cidr, e)

    available_v6 = location.available_v6 or DEFAULT_AVAILABLE_IPV6
    available_v4 = location.available_ipv4()
    return {
        "location": location.model_dump(by_alias=True),
        "display_name": location.display_name,
        "cidr_summary": location.cidr_summary(),
        "ipv4_range_details": details,
        "available_ipv4": available_v4,
        "available_ipv6": available_v6,
        "available_display": f"IPv4: {available_v4:,} / IPv6: {format_large_number(available_v6)}",
    }


# ========== REST API ==========

@app.get("/api/locations")
async def list_locations(request: Request):
    """ロケーション一覧を返す"""
    session = request.app.state.session
    return {
        "locations": [loc.model_dump(by_alias=True) for loc in session.locations],
        "selected": session.selected.id if session.selected else None,
    }


@app.get("/api/locations/selected")
async def get_selected_location(request: Request):
    """選択中のロケーションを返す"""
    session = request.app.state.session
    if session.selected is None:
        return _error(404, "ロケーションが選択されていません")
    return _location_details(session.selected)


@app.post("/api/locations/select")
async def select_location(body: SelectLocationRequest, request: Request):
    """ロケーションを選択する"""
    try:
        location = request.app.state.session.select(body.location_id)
    except UnknownLocation as e:
        return _error(404, str(e))
    return _location_details(location)


@app.post("/api/locations/random")
async def select_random_location(request: Request):
    """ランダムにロケーションを選択する"""
    location = request.app.state.session.select_random()
    if location is None:
        return _error(404, "ロケーションがありません")
    return _location_details(location)


@app.post("/api/generate/{version}")
async def generate_addresses(version: str, request: Request,
                             lookup: bool = Query(default=True)):
    """アドレスを生成し、必要に応じて国名を付与して返す"""
    if version not in VERSIONS:
        return _error(404, f"未対応のアドレスファミリーです: {version}")

    session = request.app.state.session
    try:
        result = session.generate(VERSIONS[version])
    except ActionBlocked:
        return _error(429, RATE_LIMIT_MESSAGE)
    except NoLocationSelected:
        return _error(400, "先にロケーションを選択してください")

    response = {
        "version": version,
        "location_id": result.location_id,
        "addresses": list(result.addresses),
    }
    if lookup:
        location = session.get(result.location_id)
        response["results"] = await enrich(result, location, lookup=request.app.state.lookup)
    return response


@app.post("/api/copy")
async def copy_address(body: CopyRequest, request: Request):
    """コピー操作を記録する（レート制限対象）"""
    try:
        address = request.app.state.session.record_copy(body.address)
    except ActionBlocked:
        return _error(429, RATE_LIMIT_MESSAGE)
    return {"status": "copied", "address": address}


@app.get("/api/rate-limit")
async def get_rate_limit(request: Request):
    """アクションごとのレート制限状態を返す"""
    return request.app.state.session.limiter.snapshot()


# ========== WebSocket ==========

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket接続を管理し、レート制限イベントを配信する"""
    connections = websocket.app.state.notifier.connections
    await websocket.accept()
    connections.append(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        if websocket in connections:
            connections.remove(websocket)


# ========== 起動 ==========

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
