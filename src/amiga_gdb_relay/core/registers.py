"""68k register catalog and decoding."""

from amiga_gdb_relay.core.exceptions import UnexpectedReplyError
from amiga_gdb_relay.models.gdb import Register

# gdb numbering of the m68k target
REGISTER_NAMES: list[str] = [f"d{i}" for i in range(8)] + [f"a{i}" for i in range(8)] + ["sr", "pc"]
REGISTER_SR_INDEX = 16
REGISTER_PC_INDEX = 17
REGISTER_COPPER_ADDR_INDEX = 18
COPPER_REGISTER_NAME = "copper"

REGISTER_WIDTH = 8  # hex digits per register in a "g" reply

# (name, bit) of the status register, most significant first
SR_FLAGS: list[tuple[str, int]] = [
    ("T1", 15),
    ("T0", 14),
    ("S", 13),
    ("M", 12),
    ("I2", 10),
    ("I1", 9),
    ("I0", 8),
    ("X", 4),
    ("N", 3),
    ("Z", 2),
    ("V", 1),
    ("C", 0),
]

_INDEX_BY_NAME: dict[str, int] = {name: i for i, name in enumerate(REGISTER_NAMES)}
_INDEX_BY_NAME[COPPER_REGISTER_NAME] = REGISTER_COPPER_ADDR_INDEX


def get_register_index(name: str) -> int | None:
    """Catalog index of a register name, ``None`` if unknown."""
    return _INDEX_BY_NAME.get(name.lower()) if name else None


def get_register_name(index: int) -> str | None:
    """Register name of a catalog index, ``None`` if unknown."""
    if 0 <= index < len(REGISTER_NAMES):
        return REGISTER_NAMES[index]
    if index == REGISTER_COPPER_ADDR_INDEX:
        return COPPER_REGISTER_NAME
    return None


def decode_sr_flags(sr: int) -> list[Register]:
    """Split a status register value into its flag bits."""
    return [Register(name=name, value=(sr >> bit) & 1) for name, bit in SR_FLAGS]


def parse_register_values(reply: str, command: str = "g") -> list[int]:
    """Split a ``g`` reply into register values in gdb order.

    Raises:
        UnexpectedReplyError: If the reply is too short or not hex
    """
    needed = len(REGISTER_NAMES) * REGISTER_WIDTH
    if len(reply) < needed:
        raise UnexpectedReplyError(command, reply)
    try:
        return [
            int(reply[i : i + REGISTER_WIDTH], 16)
            for i in range(0, needed, REGISTER_WIDTH)
        ]
    except ValueError:
        raise UnexpectedReplyError(command, reply) from None


def decode_registers(reply: str) -> list[Register]:
    """Decode a ``g`` reply into the display catalog.

    The order is pc, d0-d7, a0-a7, sr, then the status register flags.
    """
    values = parse_register_values(reply)
    registers = [Register(name="pc", value=values[REGISTER_PC_INDEX])]
    registers.extend(
        Register(name=REGISTER_NAMES[i], value=values[i]) for i in range(REGISTER_SR_INDEX)
    )
    registers.append(Register(name="sr", value=values[REGISTER_SR_INDEX]))
    registers.extend(decode_sr_flags(values[REGISTER_SR_INDEX]))
    return registers
