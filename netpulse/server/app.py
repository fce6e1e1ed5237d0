"""
Web surface: REST endpoints plus a WebSocket for real-time monitoring.

Every WebSocket connection owns the sessions it starts; they are stopped when
the connection closes, and all sessions are stopped on application cleanup.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from aiohttp import WSMsgType, web
from loguru import logger

from netpulse.core.engine import NetPulseEngine
from netpulse.core.errors import InvalidArgument
from netpulse.core.models import RunMode, Sample, SessionUpdate, StatsSnapshot

SERVICE_NAME = "NetPulse API"
VERSION = "1.0.0"

ENGINE_KEY = web.AppKey("engine", NetPulseEngine)


def _now() -> str:
    return datetime.now().isoformat()


async def _read_json(request: web.Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "Body must be JSON"}), content_type="application/json"
        )
    if not isinstance(body, dict):
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "Body must be a JSON object"}), content_type="application/json"
        )
    return body


def _bad_request(message: str) -> web.Response:
    return web.json_response({"error": message}, status=400)


# ──────────────────────────────────────────────────────────────────
# REST
# ──────────────────────────────────────────────────────────────────

async def health(request: web.Request) -> web.Response:
    return web.json_response({
        "status": "OK",
        "timestamp": _now(),
        "service": SERVICE_NAME,
        "version": VERSION,
    })


async def api_ping(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    body = await _read_json(request)

    host = body.get("host")
    if not host:
        return _bad_request("Host is required")

    times: List[Optional[float]] = []

    def collect(sample: Sample, snapshot: StatsSnapshot):
        times.append(sample.latency_ms)

    try:
        handle = await engine.start_run(
            host,
            RunMode.FIXED_COUNT,
            count=int(body.get("count", 4)),
            interval_ms=int(body.get("interval", 200)),
            listener=collect,
        )
    except (InvalidArgument, TypeError, ValueError) as e:
        return _bad_request(str(e))

    try:
        summary = await engine.wait_run(handle)
    finally:
        await engine.stop_run(handle)
        engine.forget(handle)

    payload = summary.to_dict()
    payload.update({
        "alive": summary.success_count > 0,
        "host": summary.target,
        "times": times,
        "avg": summary.avg,
        "min": summary.min,
        "max": summary.max,
        "jitter": summary.jitter,
        "packetLoss": summary.packet_loss,
        "timestamp": _now(),
    })
    return web.json_response(payload)


async def api_batch_test(request: web.Request) -> web.Response:
    engine = request.app[ENGINE_KEY]
    body = await _read_json(request)

    servers = body.get("servers")
    if not isinstance(servers, list) or not servers:
        return _bad_request("Servers array is required")

    try:
        report = await engine.compare_all(
            [str(s) for s in servers],
            int(body.get("testsPerServer", 5)),
            sort_key=body.get("sortKey", "avg"),
            concurrent=bool(body.get("concurrent", True)),
        )
    except (InvalidArgument, TypeError, ValueError) as e:
        return _bad_request(str(e))

    payload = report.to_dict()
    payload["timestamp"] = _now()
    return web.json_response(payload)


# ──────────────────────────────────────────────────────────────────
# WebSocket
# ──────────────────────────────────────────────────────────────────

class MonitorConnection:
    """One WebSocket client and the actions it may send."""

    def __init__(self, engine: NetPulseEngine, ws: web.WebSocketResponse):
        self.engine = engine
        self.ws = ws

    async def send(self, payload: Dict[str, Any]):
        if self.ws.closed:
            return
        await self.ws.send_json(payload)

    async def push(self, update: SessionUpdate):
        await self.send(update.to_dict())

    async def handle(self, data: Dict[str, Any]):
        action = data.get("action")
        if action == "start-monitoring":
            await self.start_monitoring(data)
        elif action == "stop-monitoring":
            await self.stop_monitoring(data)
        elif action == "ping":
            await self.ping(data)
        else:
            await self.send({"error": "Unknown action", "action": action})

    async def start_monitoring(self, data: Dict[str, Any]):
        host = data.get("host")
        session_id = data.get("sessionId")
        if not host or not session_id:
            await self.send({"error": "Host and sessionId are required"})
            return

        interval = int(data.get("interval", 1000))
        session = await self.engine.start_session(
            str(session_id), host, interval, owner=self.ws, listener=self.push
        )
        await self.send({
            "type": "monitoring-started",
            "sessionId": session.session_id,
            "host": session.target,
            "interval": session.interval_ms,
        })

    async def stop_monitoring(self, data: Dict[str, Any]):
        summary = await self.engine.stop_session(str(data.get("sessionId")))
        if summary is not None:
            await self.send(summary.to_dict())

    async def ping(self, data: Dict[str, Any]):
        host = data.get("host")
        if not host:
            await self.send({"error": "Host is required"})
            return

        result = await self.engine.ping_once(host)
        await self.send({
            "type": "ping-result",
            "data": {
                "alive": result.ok,
                "host": result.target,
                "time": result.latency_ms,
                "method": result.method,
                "failure": result.failure.value if result.failure else None,
                "cause": result.cause,
                "timestamp": _now(),
            },
        })


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    engine = request.app[ENGINE_KEY]
    ws = web.WebSocketResponse(heartbeat=30)
    await ws.prepare(request)
    connection = MonitorConnection(engine, ws)
    logger.info("New WebSocket connection")

    try:
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                try:
                    data = json.loads(msg.data)
                    if not isinstance(data, dict):
                        raise ValueError("message must be a JSON object")
                    await connection.handle(data)
                except (InvalidArgument, ValueError, TypeError) as e:
                    await connection.send({"error": "Processing failed", "message": str(e)})
            elif msg.type == WSMsgType.ERROR:
                logger.warning(f"WebSocket closed with exception {ws.exception()!r}")
    finally:
        await engine.stop_owner(ws)
        logger.info("WebSocket connection closed")

    return ws


# ──────────────────────────────────────────────────────────────────
# Application
# ──────────────────────────────────────────────────────────────────

async def _shutdown_engine(app: web.Application):
    await app[ENGINE_KEY].shutdown()


def create_app(engine: NetPulseEngine) -> web.Application:
    app = web.Application()
    app[ENGINE_KEY] = engine
    app.add_routes([
        web.get("/health", health),
        web.post("/api/ping", api_ping),
        web.post("/api/batch-test", api_batch_test),
        web.get("/ws", websocket_handler),
    ])
    app.on_cleanup.append(_shutdown_engine)
    return app
