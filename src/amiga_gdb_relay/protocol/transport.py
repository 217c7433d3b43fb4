"""TCP transport for the GDB Remote Serial Protocol."""

import asyncio
import contextlib
import logging
from collections.abc import Callable

from amiga_gdb_relay.core.exceptions import NotConnectedError, TransportError
from amiga_gdb_relay.protocol.codec import ACK, NACK, Packet, PacketDecoder, encode_packet

logger = logging.getLogger(__name__)

PacketCallback = Callable[[Packet], None]
CloseCallback = Callable[[Exception | None], None]


class ConnectionTransport:
    """Socket owner for a debug stub connection.

    Handles RSP framing and acknowledgements, and delivers every decoded
    packet to a single listener in the order it was received.
    """

    def __init__(
        self,
        packet_callback: PacketCallback | None = None,
        close_callback: CloseCallback | None = None,
        read_size: int = 4096,
    ):
        """Initialize the transport.

        Args:
            packet_callback: Called with each received packet
            close_callback: Called once when the connection goes away
            read_size: Maximum bytes per socket read
        """
        self._packet_callback = packet_callback
        self._close_callback = close_callback
        self._read_size = read_size

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._decoder = PacketDecoder()
        self._ack_mode = True
        self._connected = False

    def set_listener(
        self,
        packet_callback: PacketCallback,
        close_callback: CloseCallback | None = None,
    ) -> None:
        """Register the packet (and close) listener."""
        self._packet_callback = packet_callback
        self._close_callback = close_callback

    @property
    def ack_mode(self) -> bool:
        return self._ack_mode

    @ack_mode.setter
    def ack_mode(self, enabled: bool) -> None:
        self._ack_mode = enabled

    @property
    def is_connected(self) -> bool:
        """Check if the socket is open."""
        return self._connected

    async def open(self, host: str, port: int) -> None:
        """Open the socket and start the reader loop.

        Raises:
            TransportError: If the connection cannot be established
        """
        try:
            self._reader, self._writer = await asyncio.open_connection(host, port)
        except OSError as e:
            raise TransportError(f"{host}:{port}: {e}") from e

        self._decoder.reset()
        self._ack_mode = True
        self._connected = True
        self._reader_task = asyncio.create_task(self._read_loop())
        logger.info(f"Connected to debug stub at {host}:{port}")

    async def send(self, payload: str) -> None:
        """Send one packet.

        Raises:
            NotConnectedError: If the socket is closed
            TransportError: If writing fails
        """
        if not self._connected or self._writer is None:
            raise NotConnectedError(f"send '{payload}'")

        try:
            self._writer.write(encode_packet(payload))
            await self._writer.drain()
        except (OSError, RuntimeError) as e:
            raise TransportError(str(e)) from e

        logger.debug(f"RSP >> {payload}")

    def data_received(self, data: bytes) -> None:
        """Decode incoming bytes and dispatch complete packets."""
        for packet in self._decoder.feed(data):
            if not packet.valid:
                if self._ack_mode:
                    logger.warning(f"Bad checksum, requesting retransmission: {packet.payload}")
                    self._write_raw(NACK)
                    continue
                logger.warning(f"Bad checksum on packet: {packet.payload}")
            elif self._ack_mode and not packet.notification:
                self._write_raw(ACK)

            logger.debug(f"RSP << {packet.payload}")
            if self._packet_callback is not None:
                self._packet_callback(packet)

    def _write_raw(self, data: bytes) -> None:
        if self._writer is not None and self._connected:
            self._writer.write(data)

    async def _read_loop(self) -> None:
        """Read from the socket until EOF or error."""
        assert self._reader is not None
        error: Exception | None = None
        while self._connected:
            try:
                data = await self._reader.read(self._read_size)
            except asyncio.CancelledError:
                return
            except OSError as e:
                error = TransportError(str(e))
                break

            if not data:
                break

            try:
                self.data_received(data)
            except Exception as e:
                logger.error(f"RSP dispatch error: {e}")

        self._connection_lost(error)

    def _connection_lost(self, error: Exception | None) -> None:
        if not self._connected:
            return
        self._connected = False
        if error is not None:
            logger.warning(f"Connection to debug stub lost: {error}")
        else:
            logger.info("Debug stub closed the connection")
        if self._close_callback is not None:
            self._close_callback(error)

    async def close(self) -> None:
        """Close the socket and stop the reader loop."""
        was_connected = self._connected
        self._connected = False

        if self._reader_task and self._reader_task is not asyncio.current_task():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
        self._reader_task = None

        if self._writer is not None:
            self._writer.close()
            with contextlib.suppress(Exception):
                await self._writer.wait_closed()
            self._writer = None
        self._reader = None

        if was_connected and self._close_callback is not None:
            self._close_callback(None)
