"""Global test fixtures."""

import asyncio
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from amiga_gdb_relay.config import Settings
from amiga_gdb_relay.core.exceptions import NotConnectedError
from amiga_gdb_relay.core.proxy import GdbProxy
from amiga_gdb_relay.core.session import DebugSession
from amiga_gdb_relay.main import create_app
from amiga_gdb_relay.protocol.codec import calculate_checksum, encode_packet
from amiga_gdb_relay.protocol.transport import ConnectionTransport

SUPPORTED_REPLY = "multiprocess+;vContSupported+;QStartNoAckMode+;QNonStop+"
THREAD_INFO_REPLY = "mp01.07,p01.0f,l"
SEGMENTS_REPLY = "TextSeg=00c00000;DataSeg=00c14e18"
DUMMY_STOP = "T05;swbreak:;thread:p01.0f;0e:00c00b00;0f:00c14e18;10:00000000;11:00c034c2;1e:00005860"
COPPER_STOP = "T05;thread:p01.07;"
# d0-a7 hold 0..15, sr = 0xaaaa, pc = 17
REGISTERS_REPLY = "".join(f"{v:08x}" for v in list(range(16)) + [0xAAAA, 17])
PROGRAM_PATH = "/home/myh\\myprog"
RUN_COMMAND = "vRun;" + "dh0:myprog".encode("latin-1").hex() + ";"


def notification(payload: str) -> bytes:
    """Frame a ``%`` notification packet."""
    return f"%{payload}#{calculate_checksum(payload)}".encode("latin-1")


class ScriptedTransport(ConnectionTransport):
    """Transport double answering commands from a reply table.

    A reply may be a string, a list of strings consumed in order (the last
    one repeats), or an exception raised by ``send``. Commands without a
    reply get no answer.
    """

    def __init__(self) -> None:
        super().__init__()
        self.replies: dict[str, str | list[str] | Exception] = {}
        self.sent: list[str] = []
        self.opened: list[tuple[str, int]] = []
        self.open_error: Exception | None = None

    def script(self, command: str, *replies: str) -> None:
        self.replies[command] = list(replies)

    def count(self, command: str) -> int:
        return self.sent.count(command)

    async def open(self, host: str, port: int) -> None:
        self.opened.append((host, port))
        if self.open_error is not None:
            raise self.open_error
        self._connected = True

    async def send(self, payload: str) -> None:
        if not self._connected:
            raise NotConnectedError(f"send '{payload}'")
        self.sent.append(payload)

        reply = self.replies.get(payload)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, list):
            if not reply:
                return
            reply = reply.pop(0) if len(reply) > 1 else reply[0]
        if reply is None:
            return
        asyncio.get_running_loop().call_soon(self.data_received, encode_packet(reply))

    def push(self, data: bytes) -> None:
        """Deliver bytes as if the stub sent them unprompted."""
        asyncio.get_running_loop().call_soon(self.data_received, data)

    def lose_connection(self, error: Exception | None = None) -> None:
        """Simulate the stub going away."""
        self._connection_lost(error)

    async def close(self) -> None:
        was_connected = self._connected
        self._connected = False
        if was_connected and self._close_callback is not None:
            self._close_callback(None)


def script_handshake(transport: ScriptedTransport) -> None:
    transport.script(GdbProxy.SUPPORT_STRING, SUPPORTED_REPLY)
    transport.script("QStartNoAckMode", "OK")


def script_load(transport: ScriptedTransport, stop_on_entry: bool = True) -> None:
    if stop_on_entry:
        transport.script("Z0,0,0", "OK")
    transport.script(RUN_COMMAND, DUMMY_STOP)
    transport.script("qOffsets", SEGMENTS_REPLY)
    transport.script("qfThreadInfo", THREAD_INFO_REPLY)
    transport.script("g", REGISTERS_REPLY)
    transport.script("vCont;c:p1.f", "OK")


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        host="127.0.0.1",
        port=5681,
        stub_host="localhost",
        stub_port=6860,
        request_timeout_seconds=1.0,
    )


@pytest.fixture
def transport() -> ScriptedTransport:
    """Create a scripted transport."""
    return ScriptedTransport()


@pytest_asyncio.fixture
async def proxy(transport: ScriptedTransport) -> AsyncGenerator[GdbProxy, None]:
    """Create a proxy on the scripted transport."""
    proxy = GdbProxy(transport=transport, timeout=1.0)
    yield proxy
    await proxy.disconnect()


@pytest_asyncio.fixture
async def connected_proxy(proxy: GdbProxy, transport: ScriptedTransport) -> GdbProxy:
    """Create a proxy that completed the handshake."""
    script_handshake(transport)
    await proxy.connect("localhost", 6860)
    return proxy


@pytest_asyncio.fixture
async def loaded_proxy(connected_proxy: GdbProxy, transport: ScriptedTransport) -> GdbProxy:
    """Create a proxy with a program stopped on entry."""
    script_load(transport)
    await connected_proxy.load(PROGRAM_PATH, stop_on_entry=True)
    # Drop the entry stop event
    connected_proxy.events.clear()
    return connected_proxy


@pytest_asyncio.fixture
async def session(proxy: GdbProxy) -> DebugSession:
    """Create a relay session around the scripted proxy."""
    return DebugSession(proxy=proxy)


@pytest_asyncio.fixture
async def client(session: DebugSession) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP test client."""
    app = create_app()
    # ASGITransport does not run the lifespan
    app.state.session = session
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
