"""Tests for the 68k register catalog."""

import pytest

from amiga_gdb_relay.core.exceptions import UnexpectedReplyError
from amiga_gdb_relay.core.registers import (
    REGISTER_COPPER_ADDR_INDEX,
    decode_registers,
    decode_sr_flags,
    get_register_index,
    get_register_name,
)

REGISTERS_REPLY = "".join(f"{v:08x}" for v in list(range(16)) + [0xAAAA, 17])


class TestCatalog:
    """Tests for name/index lookups."""

    @pytest.mark.parametrize(
        "name,index",
        [("d0", 0), ("d7", 7), ("a0", 8), ("a7", 15), ("sr", 16), ("pc", 17), ("PC", 17)],
    )
    def test_register_index(self, name, index):
        """Test known register names."""
        assert get_register_index(name) == index

    def test_copper_register(self):
        """Test the copper pseudo register."""
        assert get_register_index("copper") == REGISTER_COPPER_ADDR_INDEX
        assert get_register_name(REGISTER_COPPER_ADDR_INDEX) == "copper"

    def test_unknown_register(self):
        """Test names and indexes outside the catalog."""
        assert get_register_index("d8") is None
        assert get_register_index("") is None
        assert get_register_name(99) is None


class TestDecodeRegisters:
    """Tests for g reply decoding."""

    def test_order_and_values(self):
        """Test pc first, then d0-a7, sr and its flags."""
        registers = decode_registers(REGISTERS_REPLY)
        values = {r.name: r.value for r in registers}

        assert registers[0].name == "pc"
        assert registers[0].value == 17
        assert [r.name for r in registers[1:17]] == [f"d{i}" for i in range(8)] + [
            f"a{i}" for i in range(8)
        ]
        assert values["d0"] == 0
        assert values["a7"] == 15
        assert values["sr"] == 0xAAAA

    def test_sr_flags(self):
        """Test the status register flags of 0xaaaa."""
        flags = {r.name: r.value for r in decode_sr_flags(0xAAAA)}

        assert flags["T1"] == 1
        assert flags["T0"] == 0
        assert flags["S"] == 1
        assert flags["M"] == 0
        assert flags["I2"] == 0
        assert flags["I1"] == 1
        assert flags["I0"] == 0
        assert flags["X"] == 0
        assert flags["N"] == 1
        assert flags["Z"] == 0
        assert flags["V"] == 1
        assert flags["C"] == 0

    def test_short_reply(self):
        """Test a truncated reply."""
        with pytest.raises(UnexpectedReplyError):
            decode_registers("0000")

    def test_non_hex_reply(self):
        """Test a reply with invalid characters."""
        with pytest.raises(UnexpectedReplyError):
            decode_registers("zz" * 72)
