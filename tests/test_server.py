"""Tests for the REST and WebSocket surface."""

import asyncio

import pytest
from aiohttp import test_utils

from netpulse.core.engine import NetPulseEngine
from netpulse.core.settings import Settings
from netpulse.server.app import create_app
from tests.doubles import TIMEOUT, PerTargetTransport


def _transport():
    return PerTargetTransport({
        "fast.example": [10.0],
        "slow.example": [60.0],
        "flaky.example": [20.0, TIMEOUT],
        "dead.example": [TIMEOUT],
    })


async def _with_client(scenario, transport=None):
    engine = NetPulseEngine(Settings(min_interval_ms=1), transports=[transport or _transport()])
    client = test_utils.TestClient(test_utils.TestServer(create_app(engine)))
    await client.start_server()
    try:
        return await scenario(client, engine)
    finally:
        await client.close()


class TestRest:
    @pytest.mark.asyncio
    async def test_health(self):
        async def scenario(client, engine):
            resp = await client.get("/health")
            return resp.status, await resp.json()

        status, body = await _with_client(scenario)
        assert status == 200
        assert body["status"] == "OK"
        assert body["service"] == "NetPulse API"

    @pytest.mark.asyncio
    async def test_ping(self):
        async def scenario(client, engine):
            resp = await client.post("/api/ping", json={"host": "flaky.example", "count": 4, "interval": 5})
            return resp.status, await resp.json(), dict(engine._runs)

        status, body, registered = await _with_client(scenario)

        assert status == 200
        assert body["alive"] is True
        assert body["times"] == [20.0, None, 20.0, None]
        assert body["packetLoss"] == 50
        assert body["stats"]["count"] == 4
        assert body["grade"] != "N/A"
        assert registered == {}

    @pytest.mark.asyncio
    async def test_ping_dead_host(self):
        async def scenario(client, engine):
            resp = await client.post("/api/ping", json={"host": "dead.example", "count": 2, "interval": 5})
            return await resp.json()

        body = await _with_client(scenario)
        assert body["alive"] is False
        assert body["avg"] is None
        assert body["score"] is None

    @pytest.mark.asyncio
    async def test_ping_validation(self):
        async def scenario(client, engine):
            missing = await client.post("/api/ping", json={})
            bad_count = await client.post("/api/ping", json={"host": "fast.example", "count": 0})
            not_json = await client.post("/api/ping", data="nope")
            return missing.status, bad_count.status, not_json.status, dict(engine._runs)

        assert await _with_client(scenario) == (400, 400, 400, {})

    @pytest.mark.asyncio
    async def test_batch_test(self):
        async def scenario(client, engine):
            resp = await client.post("/api/batch-test", json={
                "servers": ["slow.example", "fast.example", "dead.example"],
                "testsPerServer": 2,
            })
            return resp.status, await resp.json()

        status, body = await _with_client(scenario)

        assert status == 200
        assert [r["server"] for r in body["results"]] == ["fast.example", "slow.example"]
        assert [r["rank"] for r in body["results"]] == [1, 2]
        assert body["winner"] == "fast.example"
        assert body["excluded"] == ["dead.example"]

    @pytest.mark.asyncio
    async def test_batch_test_validation(self):
        async def scenario(client, engine):
            missing = await client.post("/api/batch-test", json={})
            empty = await client.post("/api/batch-test", json={"servers": []})
            bad_key = await client.post("/api/batch-test", json={
                "servers": ["fast.example"], "sortKey": "bogus",
            })
            return missing.status, empty.status, bad_key.status

        assert await _with_client(scenario) == (400, 400, 400)

    @pytest.mark.asyncio
    async def test_batch_test_rejects_zero_tests_per_server(self):
        transport = _transport()

        async def scenario(client, engine):
            resp = await client.post("/api/batch-test", json={
                "servers": ["fast.example"], "testsPerServer": 0,
            })
            return resp.status, await resp.json()

        status, body = await _with_client(scenario, transport)

        assert status == 400
        assert "error" in body
        assert transport.transports["fast.example"].calls == []


class TestWebSocket:
    @pytest.mark.asyncio
    async def test_monitoring_lifecycle(self):
        async def scenario(client, engine):
            ws = await client.ws_connect("/ws")
            await ws.send_json({"action": "start-monitoring", "sessionId": "s1",
                                "host": "fast.example", "interval": 5})
            received = {}
            while len(received) < 2:
                message = await ws.receive_json(timeout=2)
                received.setdefault(message["type"], message)
            started, update = received["monitoring-started"], received["monitoring-update"]

            await ws.send_json({"action": "stop-monitoring", "sessionId": "s1"})
            message = await ws.receive_json(timeout=2)
            while message["type"] == "monitoring-update":
                message = await ws.receive_json(timeout=2)

            await ws.close()
            return started, update, message, len(engine.sessions)

        started, update, stopped, remaining = await _with_client(scenario)

        assert started == {"type": "monitoring-started", "sessionId": "s1",
                           "host": "fast.example", "interval": 5}
        assert update["type"] == "monitoring-update"
        assert update["data"]["time"] == 10.0
        assert stopped["type"] == "monitoring-stopped"
        assert stopped["summary"]["stats"]["avg"] == 10.0
        assert remaining == 0

    @pytest.mark.asyncio
    async def test_closing_connection_stops_its_sessions(self):
        async def scenario(client, engine):
            ws = await client.ws_connect("/ws")
            await ws.send_json({"action": "start-monitoring", "sessionId": "s1",
                                "host": "fast.example", "interval": 5})
            await ws.receive_json(timeout=2)
            assert len(engine.sessions) == 1
            await ws.close()
            for _ in range(50):
                if not len(engine.sessions):
                    break
                await asyncio.sleep(0.01)
            return len(engine.sessions)

        assert await _with_client(scenario) == 0

    @pytest.mark.asyncio
    async def test_ping_and_errors(self):
        async def scenario(client, engine):
            ws = await client.ws_connect("/ws")
            await ws.send_json({"action": "ping", "host": "dead.example"})
            ping = await ws.receive_json(timeout=2)
            await ws.send_json({"action": "dance"})
            unknown = await ws.receive_json(timeout=2)
            await ws.send_json({"action": "start-monitoring", "sessionId": "s1"})
            missing = await ws.receive_json(timeout=2)
            await ws.send_str("not json")
            broken = await ws.receive_json(timeout=2)
            await ws.close()
            return ping, unknown, missing, broken

        ping, unknown, missing, broken = await _with_client(scenario)

        assert ping["type"] == "ping-result"
        assert ping["data"]["alive"] is False
        assert ping["data"]["failure"] == "timeout"
        assert unknown == {"error": "Unknown action", "action": "dance"}
        assert missing == {"error": "Host and sessionId are required"}
        assert broken["error"] == "Processing failed"
