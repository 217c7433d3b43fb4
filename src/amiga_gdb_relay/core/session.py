"""Relay-side debug session: one proxy plus the breakpoints of the front-end."""

import logging
from datetime import datetime, timezone

from amiga_gdb_relay.config import settings
from amiga_gdb_relay.core.exceptions import (
    BreakpointNotFoundError,
    GdbRelayError,
    InvalidBreakpointError,
)
from amiga_gdb_relay.core.proxy import GdbProxy
from amiga_gdb_relay.models.gdb import GdbBreakpoint, GdbThread, ProxyState

logger = logging.getLogger(__name__)


class DebugSession:
    """Owns the proxy and the breakpoint list.

    Breakpoints added before a program is loaded stay pending; the proxy
    asks for them through the pending-breakpoints callback once the
    program's segments are known.
    """

    def __init__(self, proxy: GdbProxy | None = None):
        self.proxy = proxy or GdbProxy()
        self.proxy.set_send_pending_breakpoints_callback(self.send_pending_breakpoints)

        self.program: str | None = None
        self.created_at = datetime.now(timezone.utc)
        self.last_activity = self.created_at

        self._breakpoints: dict[int, GdbBreakpoint] = {}
        self._next_breakpoint_id = 1

    @property
    def state(self) -> ProxyState:
        return self.proxy.state

    def touch(self) -> None:
        """Update last activity timestamp."""
        self.last_activity = datetime.now(timezone.utc)

    # === Lifecycle ===

    async def connect(self, host: str | None = None, port: int | None = None) -> None:
        host = host or settings.stub_host
        port = port or settings.stub_port
        logger.info(f"Connecting to debug stub at {host}:{port}")
        self.touch()
        await self.proxy.connect(host, port)

    async def load(self, program: str, stop_on_entry: bool = False) -> None:
        self.touch()
        # The stub forgets breakpoints when a program is run
        for bp in self._breakpoints.values():
            bp.verified = False
        await self.proxy.load(program, stop_on_entry)
        self.program = program

    async def disconnect(self) -> None:
        self.touch()
        await self.proxy.disconnect()
        self.program = None
        for bp in self._breakpoints.values():
            bp.verified = False

    # === Breakpoints ===

    @property
    def breakpoints(self) -> list[GdbBreakpoint]:
        return list(self._breakpoints.values())

    def get_breakpoint(self, breakpoint_id: int) -> GdbBreakpoint:
        bp = self._breakpoints.get(breakpoint_id)
        if bp is None:
            raise BreakpointNotFoundError(breakpoint_id)
        return bp

    async def add_breakpoint(
        self,
        offset: int,
        segment_id: int | None = None,
        exception_mask: int | None = None,
    ) -> GdbBreakpoint:
        """Add a breakpoint, sending it now if a program is loaded."""
        self.touch()
        bp = GdbBreakpoint(
            id=self._next_breakpoint_id,
            segment_id=segment_id,
            offset=offset,
            exception_mask=exception_mask,
        )
        if self.proxy.state == ProxyState.LOADED:
            await self.proxy.set_breakpoint(bp)
        else:
            if offset < 0:
                raise InvalidBreakpointError(f"negative offset {offset}", bp.id)
            bp.message = "Pending until a program is loaded"

        self._breakpoints[bp.id] = bp
        self._next_breakpoint_id += 1
        return bp

    async def remove_breakpoint(self, breakpoint_id: int) -> None:
        self.touch()
        bp = self.get_breakpoint(breakpoint_id)
        if bp.verified and self.proxy.is_connected:
            await self.proxy.remove_breakpoint(bp)
        del self._breakpoints[breakpoint_id]

    async def send_pending_breakpoints(self) -> None:
        """Send every unverified breakpoint to the stub.

        A rejected breakpoint stays pending with the stub's message.
        """
        for bp in list(self._breakpoints.values()):
            if bp.verified or bp.id not in self._breakpoints:
                continue
            try:
                await self.proxy.set_breakpoint(bp)
                bp.message = None
            except GdbRelayError as e:
                bp.message = e.message
                logger.warning(f"Breakpoint {bp.id} rejected: {e.message}")

    # === Threads ===

    def resolve_thread(self, thread_id: int) -> GdbThread:
        """Find a registered thread by its id.

        Raises:
            ThreadNotFoundError: If the stub did not report the thread
        """
        thread = self.proxy.threads.find(thread_id)
        if thread is None:
            return self.proxy.threads.resolve(
                GdbThread(process_id=self.proxy.threads.default_process_id, thread_id=thread_id)
            )
        return thread
