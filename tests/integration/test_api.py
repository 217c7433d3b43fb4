"""Integration tests for the relay API endpoints."""

import pytest
from httpx import AsyncClient

from conftest import (
    COPPER_STOP,
    PROGRAM_PATH,
    script_handshake,
    script_load,
)

from amiga_gdb_relay.core.proxy import GdbProxy
from amiga_gdb_relay.protocol.codec import encode_packet


async def connect_and_load(client: AsyncClient, transport) -> None:
    script_handshake(transport)
    script_load(transport)
    response = await client.post("/api/v1/session/connect", json={})
    assert response.status_code == 200
    response = await client.post(
        "/api/v1/session/load",
        json={"program": PROGRAM_PATH, "stop_on_entry": True},
    )
    assert response.status_code == 200


class TestServerEndpoints:
    """Tests for /health and /info."""

    @pytest.mark.asyncio
    async def test_health_returns_ok(self, client: AsyncClient) -> None:
        """Test health endpoint returns healthy status."""
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["state"] == "idle"
        assert "version" in data

    @pytest.mark.asyncio
    async def test_info_returns_server_info(self, client: AsyncClient) -> None:
        """Test info endpoint returns server information."""
        response = await client.get("/api/v1/info")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Amiga GDB Relay"
        assert "python_version" in data
        assert "stub_port" in data


class TestSessionEndpoints:
    """Tests for connection and load endpoints."""

    @pytest.mark.asyncio
    async def test_connect_and_load(self, client: AsyncClient, transport) -> None:
        """Test the full connection sequence."""
        await connect_and_load(client, transport)

        response = await client.get("/api/v1/session")

        data = response.json()
        assert data["state"] == "loaded"
        assert data["program"] == PROGRAM_PATH
        assert data["capabilities"]["multiprocess"] is True
        assert [s["name"] for s in data["segments"]] == ["TextSeg", "DataSeg"]
        assert data["thread_count"] == 2

    @pytest.mark.asyncio
    async def test_connect_refused_by_legacy_stub(self, client: AsyncClient, transport) -> None:
        """Test the error envelope of a legacy stub."""
        transport.script(GdbProxy.SUPPORT_STRING, "QStartNoAckMode+")

        response = await client.post("/api/v1/session/connect", json={"port": 6860})

        assert response.status_code == 502
        data = response.json()
        assert data["success"] is False
        assert data["error"]["code"] == "BINARIES_ERROR"
        assert "request_id" in data["meta"]

    @pytest.mark.asyncio
    async def test_load_before_connect(self, client: AsyncClient) -> None:
        """Test load in the wrong state."""
        response = await client.post("/api/v1/session/load", json={"program": PROGRAM_PATH})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_threads(self, client: AsyncClient, transport) -> None:
        """Test thread listing."""
        await connect_and_load(client, transport)

        response = await client.get("/api/v1/session/threads")

        data = response.json()
        assert [t["name"] for t in data["threads"]] == ["cop", "cpu"]
        assert data["current_cpu_thread"]["thread_id"] == 15

    @pytest.mark.asyncio
    async def test_events(self, client: AsyncClient, transport) -> None:
        """Test polling the stop-event channel."""
        await connect_and_load(client, transport)

        response = await client.get("/api/v1/session/events")

        events = response.json()["events"]
        assert events[0]["type"] == "stopped"
        assert events[0]["data"]["entry"] is True

    @pytest.mark.asyncio
    async def test_halt_status(self, client: AsyncClient, transport) -> None:
        """Test halt status of the stopped threads."""
        await connect_and_load(client, transport)
        transport.script("?", COPPER_STOP)
        transport.script("vStopped", "OK")

        response = await client.get("/api/v1/session/halt-status")

        statuses = response.json()["statuses"]
        assert len(statuses) == 1
        assert statuses[0]["thread"]["thread_id"] == 7

    @pytest.mark.asyncio
    async def test_disconnect(self, client: AsyncClient, transport) -> None:
        """Test disconnecting."""
        await connect_and_load(client, transport)

        response = await client.post("/api/v1/session/disconnect")

        assert response.json()["state"] == "disconnected"


class TestBreakpointEndpoints:
    """Tests for breakpoint endpoints."""

    @pytest.mark.asyncio
    async def test_breakpoint_lifecycle(self, client: AsyncClient, transport) -> None:
        """Test add, list and remove."""
        await connect_and_load(client, transport)
        transport.script("Z0,4,0", "OK")
        transport.script("z0,4,0", "OK")

        response = await client.post(
            "/api/v1/session/breakpoints", json={"offset": 4, "segment_id": 0}
        )
        assert response.status_code == 201
        bp = response.json()
        assert bp["verified"] is True

        response = await client.get("/api/v1/session/breakpoints")
        assert response.json()["total"] == 1

        response = await client.delete(f"/api/v1/session/breakpoints/{bp['id']}")
        assert response.status_code == 204
        assert transport.sent[-1] == "z0,4,0"

    @pytest.mark.asyncio
    async def test_pending_breakpoint(self, client: AsyncClient) -> None:
        """Test a breakpoint added before load stays pending."""
        response = await client.post("/api/v1/session/breakpoints", json={"offset": 4})

        assert response.status_code == 201
        assert response.json()["verified"] is False

    @pytest.mark.asyncio
    async def test_invalid_segment(self, client: AsyncClient, transport) -> None:
        """Test a breakpoint in a segment that is not loaded."""
        await connect_and_load(client, transport)

        response = await client.post(
            "/api/v1/session/breakpoints", json={"offset": 4, "segment_id": 9}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_BREAKPOINT"

    @pytest.mark.asyncio
    async def test_exception_breakpoint_with_segment(self, client: AsyncClient) -> None:
        """Test request validation errors use the error envelope."""
        response = await client.post(
            "/api/v1/session/breakpoints",
            json={"offset": 0, "segment_id": 0, "exception_mask": 10},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_REQUEST"
        assert "cannot have a segment" in error["message"]
        assert error["details"]["errors"]

    @pytest.mark.asyncio
    async def test_remove_unknown_breakpoint(self, client: AsyncClient) -> None:
        """Test removing a breakpoint that does not exist."""
        response = await client.delete("/api/v1/session/breakpoints/42")

        assert response.status_code == 404


class TestExecutionEndpoints:
    """Tests for execution control endpoints."""

    @pytest.mark.asyncio
    async def test_continue(self, client: AsyncClient, transport) -> None:
        """Test continuing the CPU thread."""
        await connect_and_load(client, transport)

        response = await client.post("/api/v1/session/threads/15/continue")

        assert response.status_code == 200
        assert response.json()["thread"]["name"] == "cpu"
        assert transport.sent[-1] == "vCont;c:p1.f"

    @pytest.mark.asyncio
    async def test_step_range(self, client: AsyncClient, transport) -> None:
        """Test range stepping."""
        await connect_and_load(client, transport)
        transport.script("vCont;r10,20:p1.f", "OK")

        response = await client.post(
            "/api/v1/session/threads/15/step-range",
            json={"start_address": 16, "end_address": 32},
        )

        assert response.status_code == 200
        assert transport.sent[-1] == "vCont;r10,20:p1.f"

    @pytest.mark.asyncio
    async def test_unknown_thread(self, client: AsyncClient, transport) -> None:
        """Test a thread the stub did not report."""
        await connect_and_load(client, transport)

        response = await client.post("/api/v1/session/threads/3/pause")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "THREAD_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_stub_timeout(self, client: AsyncClient, transport, session) -> None:
        """Test an unanswered command maps to 504."""
        await connect_and_load(client, transport)
        session.proxy._timeout = 0.1

        response = await client.post("/api/v1/session/threads/15/step-in")

        assert response.status_code == 504
        assert response.json()["error"]["code"] == "STUB_UNRESPONSIVE"


class TestInspectionEndpoints:
    """Tests for state inspection endpoints."""

    @pytest.mark.asyncio
    async def test_registers(self, client: AsyncClient, transport) -> None:
        """Test CPU registers."""
        await connect_and_load(client, transport)

        response = await client.get("/api/v1/session/registers")

        registers = response.json()["registers"]
        assert registers[0] == {"name": "pc", "value": 17}

    @pytest.mark.asyncio
    async def test_copper_registers(self, client: AsyncClient, transport) -> None:
        """Test copper registers."""
        await connect_and_load(client, transport)
        transport.script("p12", "00c1c000")

        response = await client.get("/api/v1/session/registers", params={"thread_id": 7})

        assert response.json()["registers"] == [{"name": "copper", "value": 0xC1C000}]

    @pytest.mark.asyncio
    async def test_set_register(self, client: AsyncClient, transport) -> None:
        """Test writing a register."""
        await connect_and_load(client, transport)
        transport.script("P0=8aff", "OK")

        response = await client.put("/api/v1/session/registers/d0", json={"value": "8aff"})

        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_set_unknown_register(self, client: AsyncClient, transport) -> None:
        """Test writing a register outside the catalog."""
        await connect_and_load(client, transport)

        response = await client.put("/api/v1/session/registers/x9", json={"value": "00"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_memory(self, client: AsyncClient, transport) -> None:
        """Test memory read and write."""
        await connect_and_load(client, transport)
        transport.script("ma,8", "0011223344556677")
        transport.script("Ma,2:8aff", "OK")

        response = await client.get("/api/v1/session/memory", params={"address": 10, "length": 8})
        assert response.json()["data"] == "0011223344556677"

        response = await client.put("/api/v1/session/memory", json={"address": 10, "data": "8aff"})
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_memory_error_reply(self, client: AsyncClient, transport) -> None:
        """Test a stub error on memory read."""
        await connect_and_load(client, transport)
        transport.script("ma,8", "E0f")

        response = await client.get("/api/v1/session/memory", params={"address": 10, "length": 8})

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "GDB_ERROR"
        assert error["details"]["error_type"] == "E0F"

    @pytest.mark.asyncio
    async def test_copper_stack(self, client: AsyncClient, transport) -> None:
        """Test the copper stack position."""
        await connect_and_load(client, transport)
        transport.script("p12", "00c1c000")

        response = await client.get("/api/v1/session/threads/7/stack")

        data = response.json()
        assert data["total_frames"] == 1
        assert data["frames"][0]["index"] == -1000
        assert data["frames"][0]["segment_id"] == -10

    @pytest.mark.asyncio
    async def test_stop_event_after_continue(self, client: AsyncClient, transport, session) -> None:
        """Test a stop pushed by the stub reaches the event endpoint."""
        await connect_and_load(client, transport)
        await client.get("/api/v1/session/events")
        await client.post("/api/v1/session/threads/15/continue")

        transport.push(encode_packet(COPPER_STOP))
        response = await client.get("/api/v1/session/events", params={"timeout": 1})

        events = response.json()["events"]
        assert events[0]["halt_status"]["thread"]["thread_id"] == 7
