"""GDB Remote Serial Protocol engine for the Amiga debug stub."""

import asyncio
import contextlib
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from amiga_gdb_relay.config import settings
from amiga_gdb_relay.core.breakpoints import BreakpointTranslator
from amiga_gdb_relay.core.events import EventQueue
from amiga_gdb_relay.core.exceptions import (
    DisconnectedError,
    GdbError,
    InvalidBreakpointError,
    InvalidRegisterError,
    InvalidStateError,
    LegacyStubError,
    NotConnectedError,
    RequestInFlightError,
    StubUnresponsiveError,
    UnexpectedReplyError,
)
from amiga_gdb_relay.core.registers import (
    REGISTER_COPPER_ADDR_INDEX,
    REGISTER_PC_INDEX,
    decode_registers,
    get_register_index,
    get_register_name,
    parse_register_values,
)
from amiga_gdb_relay.core.threads import ThreadRegistry, format_thread_id
from amiga_gdb_relay.models.events import EventType
from amiga_gdb_relay.models.gdb import (
    Capabilities,
    GdbBreakpoint,
    GdbThread,
    HaltStatus,
    ProxyState,
    Register,
    Segment,
    StackFrame,
    StackPosition,
    SysThreadId,
    ThreadKind,
)
from amiga_gdb_relay.protocol.codec import Packet, calculate_checksum, encode_packet
from amiga_gdb_relay.protocol.replies import (
    is_error_reply,
    is_stop_reply,
    parse_capabilities,
    parse_segments,
    parse_stop_reply,
    parse_thread_list,
)
from amiga_gdb_relay.protocol.transport import ConnectionTransport

logger = logging.getLogger(__name__)

PendingBreakpointsCallback = Callable[[], Awaitable[None]]

# Opaque sentinels of stack positions
CURRENT_FRAME_INDEX = -1
NO_SEGMENT_ID = -1
COPPER_FRAME_INDEX = -1000
COPPER_SEGMENT_ID = -10


@dataclass
class _InFlightRequest:
    """The command whose reply is awaited."""

    command: str
    future: asyncio.Future[str]
    accepts_stop_reply: bool


class GdbProxy:
    """Client of the FS-UAE debug stub.

    Commands are strictly request/reply: one command is on the wire at a
    time. Stop notifications are routed to a stop queue drained by a
    dispatcher task, which publishes them on ``events``.
    """

    SUPPORT_STRING = "qSupported:QStartNoAckMode+;multiprocess+;vContSupported+;QNonStop+"
    REQUIRED_FEATURE = "vContSupported+"

    _VALID_TRANSITIONS: dict[ProxyState, set[ProxyState]] = {
        ProxyState.IDLE: {ProxyState.CONNECTING, ProxyState.DISCONNECTED},
        ProxyState.CONNECTING: {ProxyState.NEGOTIATING},
        ProxyState.NEGOTIATING: {ProxyState.READY},
        ProxyState.READY: {ProxyState.LOADED},
        ProxyState.LOADED: {ProxyState.READY},
        ProxyState.DISCONNECTED: {ProxyState.CONNECTING},
        ProxyState.ERROR: {ProxyState.CONNECTING},
    }

    def __init__(
        self,
        transport: ConnectionTransport | None = None,
        timeout: float | None = None,
        remote_program_prefix: str | None = None,
        events: EventQueue | None = None,
    ):
        """Initialize the proxy.

        Args:
            transport: Transport to the stub (a TCP transport if omitted)
            timeout: Default seconds to wait for each reply
            remote_program_prefix: Amiga volume the programs are run from
            events: Stop-event channel
        """
        self._transport = transport or ConnectionTransport()
        self._transport.set_listener(self._on_packet, self._on_transport_closed)
        self._timeout = timeout or settings.request_timeout_seconds
        self._remote_program_prefix = (
            settings.remote_program_prefix
            if remote_program_prefix is None
            else remote_program_prefix
        )
        self.events = events or EventQueue(
            max_size=settings.event_queue_size,
            max_history=settings.event_history_size,
        )

        self._state = ProxyState.IDLE
        self.capabilities = Capabilities()
        self.segments: list[Segment] = []
        self.threads = ThreadRegistry()
        self.translator = BreakpointTranslator()
        self._cpu_registers: dict[str, int] = {}

        self._send_lock = asyncio.Lock()
        self._in_flight: _InFlightRequest | None = None
        self._stop_queue: asyncio.Queue[HaltStatus] = asyncio.Queue()
        self._dispatcher_task: asyncio.Task[None] | None = None
        self._closing = False

        self._send_pending_breakpoints_callback: PendingBreakpointsCallback | None = None
        self._pending_flush_armed = False

    # === State ===

    @property
    def state(self) -> ProxyState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state in (ProxyState.READY, ProxyState.LOADED)

    def _transition_to(self, new_state: ProxyState) -> None:
        """Change state, failing on transitions the protocol does not allow.

        Any state may fall to ``disconnected`` or ``error``.
        """
        if new_state == self._state:
            return
        if new_state not in (ProxyState.DISCONNECTED, ProxyState.ERROR):
            allowed = self._VALID_TRANSITIONS.get(self._state, set())
            if new_state not in allowed:
                raise InvalidStateError(self._state.value, [s.value for s in allowed])
        self._state = new_state
        logger.info(f"GdbProxy: state -> {new_state.value}")

    def require_state(self, *states: ProxyState) -> None:
        """Raise if not in one of the required states."""
        if self._state not in states:
            raise InvalidStateError(self._state.value, [s.value for s in states])

    def _require_connected(self, operation: str) -> None:
        if not self.is_connected:
            raise NotConnectedError(operation)

    # === Connection ===

    async def connect(self, host: str, port: int) -> None:
        """Open the connection and negotiate the protocol.

        Raises:
            TransportError: If the socket cannot be opened
            LegacyStubError: If the stub lacks vCont support
            UnexpectedReplyError: If no-ack mode is refused
        """
        self._transition_to(ProxyState.CONNECTING)
        self._discard_stale_stops()
        try:
            await self._transport.open(host, port)
            self._transition_to(ProxyState.NEGOTIATING)

            reply = await self.send_packet_string(self.SUPPORT_STRING)
            if self.REQUIRED_FEATURE not in reply.split(";"):
                raise LegacyStubError(f"'{self.REQUIRED_FEATURE}' missing from '{reply}'")
            self.capabilities = parse_capabilities(reply)

            reply = await self.send_packet_string("QStartNoAckMode")
            if reply != "OK":
                raise UnexpectedReplyError("QStartNoAckMode", reply)
            self._transport.ack_mode = False
        except Exception:
            await self._close_transport()
            self._transition_to(ProxyState.ERROR)
            raise

        self._transition_to(ProxyState.READY)
        self._start_dispatcher()

    async def disconnect(self) -> None:
        """Close the connection; pending and later requests fail."""
        await self._close_transport()
        self._fail_in_flight(DisconnectedError(self._in_flight_command))
        await self._stop_dispatcher()
        self._reset_program_state()
        if self._state != ProxyState.DISCONNECTED:
            self._transition_to(ProxyState.DISCONNECTED)
            self.events.put(EventType.DISCONNECTED)

    async def _close_transport(self) -> None:
        self._closing = True
        try:
            await self._transport.close()
        finally:
            self._closing = False

    def _on_transport_closed(self, error: Exception | None) -> None:
        self._fail_in_flight(DisconnectedError(self._in_flight_command))
        if self._closing:
            return
        if self._state in (
            ProxyState.CONNECTING,
            ProxyState.NEGOTIATING,
            ProxyState.READY,
            ProxyState.LOADED,
        ):
            self._transition_to(ProxyState.ERROR if error else ProxyState.DISCONNECTED)
            self.events.put(
                EventType.DISCONNECTED,
                data={"error": str(error)} if error else {},
            )

    # === Packets ===

    @staticmethod
    def calculate_checksum(payload: str) -> str:
        return calculate_checksum(payload)

    @staticmethod
    def format_string(payload: str) -> bytes:
        """Frame a payload the way the stub would send it."""
        return encode_packet(payload)

    def inject(self, data: bytes) -> None:
        """Feed raw bytes to the transport as if received from the stub."""
        self._transport.data_received(data)

    @property
    def _in_flight_command(self) -> str | None:
        return self._in_flight.command if self._in_flight else None

    async def send_packet_string(
        self,
        command: str,
        accepts_stop_reply: bool = False,
        timeout: float | None = None,
    ) -> str:
        """Send a command and wait for its reply.

        Commands are queued so that only one is on the wire at a time.

        Args:
            command: Packet payload
            accepts_stop_reply: Whether a stop reply answers this command
            timeout: Reply timeout (uses default if not specified)

        Returns:
            The reply payload

        Raises:
            GdbError: If the stub replies with an error code
            StubUnresponsiveError: If no reply arrives in time
            DisconnectedError: If the connection closes first
        """
        async with self._send_lock:
            return await self._send_and_wait(command, accepts_stop_reply, timeout)

    async def _send_and_wait(
        self,
        command: str,
        accepts_stop_reply: bool,
        timeout: float | None,
    ) -> str:
        if self._in_flight is not None:
            raise RequestInFlightError(command, self._in_flight.command)
        if not self._transport.is_connected:
            if self._state in (ProxyState.DISCONNECTED, ProxyState.ERROR):
                raise DisconnectedError(command)
            raise NotConnectedError(f"send '{command}'")

        wait = timeout or self._timeout
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._in_flight = _InFlightRequest(command, future, accepts_stop_reply)
        try:
            await self._transport.send(command)
            reply = await asyncio.wait_for(future, timeout=wait)
        except asyncio.TimeoutError:
            raise StubUnresponsiveError(command, wait) from None
        finally:
            self._in_flight = None

        if is_error_reply(reply):
            raise GdbError(reply)
        return reply

    async def _expect_ok(self, command: str) -> None:
        reply = await self.send_packet_string(command)
        if reply != "OK":
            raise UnexpectedReplyError(command, reply)

    def _on_packet(self, packet: Packet) -> None:
        """Route a received packet to the awaited reply or the stop queue."""
        payload = packet.payload
        if packet.notification:
            name, _, body = payload.partition(":")
            if name == "Stop":
                self._queue_stop(body)
            else:
                logger.debug(f"Ignoring notification '{name}'")
            return

        in_flight = self._in_flight
        if in_flight is not None and not in_flight.future.done():
            if is_stop_reply(payload) and not in_flight.accepts_stop_reply:
                self._queue_stop(payload)
            else:
                in_flight.future.set_result(payload)
            return

        if is_stop_reply(payload):
            self._queue_stop(payload)
        else:
            logger.warning(f"Dropping unsolicited packet: {payload}")

    def _fail_in_flight(self, error: Exception) -> None:
        if self._in_flight is not None and not self._in_flight.future.done():
            self._in_flight.future.set_exception(error)

    # === Stop events ===

    def _queue_stop(self, payload: str) -> None:
        try:
            status = parse_stop_reply(payload, self.threads.default_process_id)
        except ValueError:
            status = None
        if status is None:
            logger.warning(f"Malformed stop notification: {payload}")
            return
        self._stop_queue.put_nowait(status)

    def _discard_stale_stops(self) -> None:
        while not self._stop_queue.empty():
            self._stop_queue.get_nowait()

    def _start_dispatcher(self) -> None:
        # Stops queued during negotiation are dispatched once ready
        if self._dispatcher_task is None or self._dispatcher_task.done():
            self._dispatcher_task = asyncio.create_task(self._dispatch_stops())

    async def _stop_dispatcher(self) -> None:
        if self._dispatcher_task is not None:
            self._dispatcher_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._dispatcher_task
            self._dispatcher_task = None

    async def _dispatch_stops(self) -> None:
        while True:
            status = await self._stop_queue.get()
            try:
                await self._handle_stop(status)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Stop event handling failed: {e}")

    async def _handle_stop(self, status: HaltStatus) -> None:
        if status.thread is not None:
            status.thread = self.threads.set_current(status.thread)
        if status.thread is None or status.thread.kind == ThreadKind.CPU:
            self._update_cpu_registers(status.registers)
        logger.info(f"Stop received: code={status.code} thread={status.thread}")

        event_type = EventType.EXITED if status.exited else EventType.STOPPED
        try:
            if self._pending_flush_armed:
                self._pending_flush_armed = False
                await self.send_all_pending_breakpoints()
        finally:
            self.events.put(event_type, status)

    def _update_cpu_registers(self, values: dict[int, int]) -> None:
        for index, value in values.items():
            name = get_register_name(index)
            if name is not None:
                self._cpu_registers[name] = value

    # === Program load ===

    def set_send_pending_breakpoints_callback(self, callback: PendingBreakpointsCallback) -> None:
        """Register the callback that sends the front-end's pending breakpoints."""
        self._send_pending_breakpoints_callback = callback

    async def send_all_pending_breakpoints(self) -> None:
        if self._send_pending_breakpoints_callback is not None:
            await self._send_pending_breakpoints_callback()

    def remote_program_path(self, program_path: str) -> str:
        """Amiga path of a host program, e.g. ``dh0:myprog``."""
        name = re.split(r"[\\/]", program_path)[-1]
        if ":" in name:
            return name
        return f"{self._remote_program_prefix}{name}"

    async def load(self, program_path: str, stop_on_entry: bool) -> None:
        """Run a program in the emulator.

        With ``stop_on_entry`` the program halts on its first instruction
        and pending breakpoints are sent before returning. Otherwise the
        program is continued and pending breakpoints are sent on the first
        stop.

        Raises:
            LegacyStubError: If the stub answers with the legacy run reply
            UnexpectedReplyError: If the run reply is not a stop reply
        """
        self.require_state(ProxyState.READY, ProxyState.LOADED)
        self._reset_program_state()

        try:
            if stop_on_entry:
                await self._expect_ok("Z0,0,0")

            remote_path = self.remote_program_path(program_path)
            command = f"vRun;{remote_path.encode('latin-1').hex()};"
            reply = await self.send_packet_string(command, accepts_stop_reply=True)
            entry_stop = self._parse_run_reply(command, reply)

            self.segments = parse_segments(await self.send_packet_string("qOffsets"))
            await self._fetch_threads()
            if entry_stop.thread is not None:
                entry_stop.thread = self.threads.set_current(entry_stop.thread)
            await self.registers(None)

            self._transition_to(ProxyState.LOADED)
            logger.info(f"Loaded {remote_path} with {len(self.segments)} segment(s)")

            if stop_on_entry:
                await self.send_all_pending_breakpoints()
                self.events.put(EventType.STOPPED, entry_stop, {"entry": True})
            else:
                self._pending_flush_armed = True
                await self.continue_execution(self._default_thread())
        except Exception:
            self._reset_program_state()
            if self._state == ProxyState.LOADED:
                self._transition_to(ProxyState.READY)
            raise

    def _parse_run_reply(self, command: str, reply: str) -> HaltStatus:
        if reply.startswith("AS"):
            raise LegacyStubError(f"legacy run reply '{reply}'")
        status = parse_stop_reply(reply, self.threads.default_process_id)
        if status is None or status.exited:
            raise UnexpectedReplyError(command, reply)
        return status

    async def _fetch_threads(self) -> None:
        command = "qfThreadInfo"
        reply = await self.send_packet_string(command)
        while True:
            try:
                thread_ids, done = parse_thread_list(reply)
            except ValueError:
                raise UnexpectedReplyError(command, reply) from None
            for thread_id in thread_ids:
                self.threads.add_from_id(thread_id)
            if done:
                return
            command = "qsThreadInfo"
            reply = await self.send_packet_string(command)

    def _default_thread(self) -> GdbThread:
        thread = self.threads.current_cpu_thread
        if thread is None:
            thread = self.threads.add(
                GdbThread(process_id=self.threads.default_process_id, thread_id=int(SysThreadId.CPU))
            )
        return thread

    def _reset_program_state(self) -> None:
        self.segments = []
        self.threads.clear()
        self._cpu_registers.clear()
        self._pending_flush_armed = False

    # === Breakpoints ===

    async def set_breakpoint(self, bp: GdbBreakpoint) -> GdbBreakpoint:
        """Send a breakpoint to the stub and mark it verified.

        Raises:
            NotConnectedError: If no session is established
            InvalidBreakpointError: If offset or segment are invalid
        """
        self._require_connected("set a breakpoint")
        self.translator.validate(bp, self.segments)
        await self._expect_ok(self.translator.set_command(bp))
        bp.verified = True
        return bp

    async def remove_breakpoint(self, bp: GdbBreakpoint) -> None:
        """Remove a breakpoint previously sent to the stub.

        Raises:
            NotConnectedError: If no session is established
            InvalidBreakpointError: If the offset is negative
        """
        self._require_connected("remove a breakpoint")
        if bp.offset < 0:
            raise InvalidBreakpointError(f"negative offset {bp.offset}", bp.id)
        await self._expect_ok(self.translator.remove_command(bp))
        bp.verified = False

    # === Threads and execution control ===

    @property
    def current_cpu_thread(self) -> GdbThread | None:
        return self.threads.current_cpu_thread

    def get_thread_from_sys_thread_id(self, sys_thread_id: SysThreadId) -> GdbThread | None:
        return self.threads.from_sys_thread_id(sys_thread_id)

    def format_thread(self, thread: GdbThread) -> str:
        return format_thread_id(thread, self.capabilities.multiprocess)

    async def _vcont(self, action: str, thread: GdbThread) -> None:
        registered = self.threads.resolve(thread)
        await self._expect_ok(f"vCont;{action}:{self.format_thread(registered)}")

    async def continue_execution(self, thread: GdbThread) -> None:
        await self._vcont("c", thread)

    async def pause(self, thread: GdbThread) -> None:
        await self._vcont("t", thread)

    async def step_in(self, thread: GdbThread) -> None:
        await self._vcont("s", thread)

    async def step_to_range(self, thread: GdbThread, start_address: int, end_address: int) -> None:
        """Step until the pc leaves ``[start_address, end_address)``."""
        await self._vcont(f"r{start_address:x},{end_address:x}", thread)

    async def get_halt_status(self) -> list[HaltStatus]:
        """Collect the stop reports of every stopped thread, in order."""
        statuses: list[HaltStatus] = []
        command = "?"
        reply = await self.send_packet_string(command, accepts_stop_reply=True)
        while reply != "OK":
            status = parse_stop_reply(reply, self.threads.default_process_id)
            if status is None:
                raise UnexpectedReplyError(command, reply)
            if status.thread is not None:
                status.thread = self.threads.set_current(status.thread)
            statuses.append(status)
            command = "vStopped"
            reply = await self.send_packet_string(command, accepts_stop_reply=True)
        return statuses

    # === Registers and memory ===

    @staticmethod
    def get_register_index(name: str) -> int | None:
        return get_register_index(name)

    @staticmethod
    def get_register_name(index: int) -> str | None:
        return get_register_name(index)

    @property
    def cpu_registers(self) -> dict[str, int]:
        """Last known CPU register values by name."""
        return dict(self._cpu_registers)

    async def registers(self, thread: GdbThread | None = None) -> list[Register]:
        """Read the registers of a thread (the current CPU thread if None)."""
        if thread is not None:
            thread = self.threads.resolve(thread)
            if thread.kind == ThreadKind.COPPER:
                value = await self.get_register(REGISTER_COPPER_ADDR_INDEX)
                return [Register(name="copper", value=value)]
            if thread.kind == ThreadKind.OTHER:
                await self._expect_ok(f"Hg{self.format_thread(thread)}")

        reply = await self.send_packet_string("g")
        registers = decode_registers(reply)
        if thread is None or thread.kind == ThreadKind.CPU:
            self._update_cpu_registers(dict(enumerate(parse_register_values(reply))))
        return registers

    async def get_register(self, index: int) -> int:
        """Read one register by catalog index."""
        command = f"p{index:x}"
        reply = await self.send_packet_string(command)
        try:
            return int(reply, 16)
        except ValueError:
            raise UnexpectedReplyError(command, reply) from None

    async def set_register(self, name: str, hex_value: str) -> None:
        index = get_register_index(name)
        if index is None:
            raise InvalidRegisterError(name)
        await self._expect_ok(f"P{index:x}={hex_value}")

    async def get_memory(self, address: int, length: int) -> str:
        """Read memory; returns the hex string as sent by the stub."""
        return await self.send_packet_string(f"m{address:x},{length:x}")

    async def set_memory(self, address: int, hex_data: str) -> None:
        await self._expect_ok(f"M{address:x},{len(hex_data) // 2:x}:{hex_data}")

    # === Stack ===

    def find_segment(self, address: int) -> Segment | None:
        """Segment whose range contains ``address``.

        A segment extends up to the next segment's address; the highest
        one is unbounded.
        """
        ordered = sorted(self.segments, key=lambda s: s.address)
        for i, segment in enumerate(ordered):
            upper = ordered[i + 1].address if i + 1 < len(ordered) else None
            if segment.address <= address and (upper is None or address < upper):
                return segment
        return None

    def _stack_position(self, index: int, pc: int, stack_frame_index: int) -> StackPosition:
        segment = self.find_segment(pc)
        if segment is None:
            return StackPosition(
                index=index,
                segment_id=NO_SEGMENT_ID,
                offset=pc,
                pc=pc,
                stack_frame_index=stack_frame_index,
            )
        return StackPosition(
            index=index,
            segment_id=segment.id,
            offset=pc - segment.address,
            pc=pc,
            stack_frame_index=stack_frame_index,
        )

    async def _select_trace_frame(self, frame_index: int) -> int:
        command = f"QTFrame:{frame_index:x}"
        reply = await self.send_packet_string(command)
        try:
            return int(reply.lstrip("F"), 16)
        except ValueError:
            raise UnexpectedReplyError(command, reply) from None

    async def stack(self, thread: GdbThread) -> StackFrame:
        """Stack positions of a thread.

        The Copper has no call stack: its single synthetic position is the
        current fetch address.
        """
        thread = self.threads.resolve(thread)
        if thread.kind == ThreadKind.CPU:
            return await self._cpu_stack()
        if thread.kind == ThreadKind.COPPER:
            return await self._copper_stack()
        return StackFrame()

    async def _cpu_stack(self) -> StackFrame:
        current_index = await self._select_trace_frame(CURRENT_FRAME_INDEX)
        pc = await self.get_register(REGISTER_PC_INDEX)
        frames = [self._stack_position(CURRENT_FRAME_INDEX, pc, current_index)]
        for frame_index in range(current_index, 0, -1):
            stack_frame_index = await self._select_trace_frame(frame_index)
            pc = await self.get_register(REGISTER_PC_INDEX)
            frames.append(self._stack_position(frame_index, pc, stack_frame_index))
        return StackFrame(frames=frames, count=len(frames))

    async def _copper_stack(self) -> StackFrame:
        address = await self.get_register(REGISTER_COPPER_ADDR_INDEX)
        position = StackPosition(
            index=COPPER_FRAME_INDEX,
            segment_id=COPPER_SEGMENT_ID,
            offset=0,
            pc=address,
            stack_frame_index=0,
        )
        return StackFrame(frames=[position], count=1)
