"""GDB Remote Serial Protocol packet framing.

A packet travels as ``$<payload>#<checksum>``, asynchronous notifications
as ``%<payload>#<checksum>``. The checksum is the sum of the transmitted
payload bytes modulo 256, as two lowercase hex digits. Inside a payload,
``$``, ``#``, ``}`` and ``*`` are escaped as ``}`` followed by the byte
XOR 0x20, and stubs may compress repeated characters as ``<c>*<n>`` where
the repeat count is ``ord(n) - 29``.
"""

from dataclasses import dataclass

ESCAPE_CHAR = 0x7D  # }
RLE_CHAR = 0x2A  # *
_ESCAPED_BYTES = frozenset(b"$#}*")

ACK = b"+"
NACK = b"-"


def calculate_checksum(payload: str | bytes) -> str:
    """Return the two-digit lowercase hex checksum of ``payload``."""
    data = payload.encode("latin-1") if isinstance(payload, str) else payload
    return f"{sum(data) % 256:02x}"


def escape_payload(payload: str) -> bytes:
    """Escape the RSP special characters of a payload."""
    out = bytearray()
    for byte in payload.encode("latin-1"):
        if byte in _ESCAPED_BYTES:
            out.append(ESCAPE_CHAR)
            out.append(byte ^ 0x20)
        else:
            out.append(byte)
    return bytes(out)


def encode_packet(payload: str) -> bytes:
    """Frame ``payload`` as ``$<payload>#<checksum>``."""
    body = escape_payload(payload)
    return b"$" + body + b"#" + calculate_checksum(body).encode("ascii")


def decode_payload(raw: bytes) -> str:
    """Undo escaping and run-length encoding of a received payload."""
    out = bytearray()
    i = 0
    while i < len(raw):
        byte = raw[i]
        if byte == ESCAPE_CHAR and i + 1 < len(raw):
            out.append(raw[i + 1] ^ 0x20)
            i += 2
        elif byte == RLE_CHAR and out and i + 1 < len(raw):
            out.extend(out[-1:] * (raw[i + 1] - 29))
            i += 2
        else:
            out.append(byte)
            i += 1
    return out.decode("latin-1")


@dataclass(frozen=True)
class Packet:
    """A decoded packet."""

    payload: str
    checksum: str
    valid: bool
    notification: bool = False


class PacketDecoder:
    """Incremental packet decoder.

    Bytes fed across several calls are buffered until a complete frame is
    available, so fragmented or merged TCP reads decode the same way.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def feed(self, data: bytes) -> list[Packet]:
        """Append ``data`` and return every complete packet."""
        self._buffer.extend(data)
        packets: list[Packet] = []
        while True:
            packet = self._next_packet()
            if packet is None:
                return packets
            packets.append(packet)

    def _next_packet(self) -> Packet | None:
        start = self._find_start()
        if start < 0:
            # Acks and line noise between frames
            self._buffer.clear()
            return None
        if start:
            del self._buffer[:start]

        end = self._buffer.find(b"#", 1)
        if end < 0 or len(self._buffer) < end + 3:
            return None

        raw = bytes(self._buffer[1:end])
        checksum = bytes(self._buffer[end + 1 : end + 3]).decode("latin-1").lower()
        notification = self._buffer[0] == ord("%")
        del self._buffer[: end + 3]

        return Packet(
            payload=decode_payload(raw),
            checksum=checksum,
            valid=calculate_checksum(raw) == checksum,
            notification=notification,
        )

    def _find_start(self) -> int:
        starts = [i for i in (self._buffer.find(b"$"), self._buffer.find(b"%")) if i >= 0]
        return min(starts) if starts else -1

    @property
    def pending(self) -> bytes:
        """Bytes of an incomplete frame still buffered."""
        return bytes(self._buffer)

    def reset(self) -> None:
        self._buffer.clear()
