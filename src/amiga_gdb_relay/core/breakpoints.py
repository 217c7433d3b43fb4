"""Translation between breakpoints and ``Z``/``z`` packets."""

import re

from amiga_gdb_relay.core.exceptions import InvalidBreakpointError
from amiga_gdb_relay.models.gdb import GdbBreakpoint, Segment

SOFTWARE_BREAKPOINT = 0
EXCEPTION_BREAKPOINT = 1

_SET_EXCEPTION_RE = re.compile(r"^Z1,([0-9a-fA-F]+),0;X1,([0-9a-fA-F]+)$")
_REMOVE_EXCEPTION_RE = re.compile(r"^z1,([0-9a-fA-F]+)$")
_ADDRESS_RE = re.compile(r"^([Zz])0,([0-9a-fA-F]+)(?:,([0-9a-fA-F]+))?$")


class BreakpointTranslator:
    """Builds breakpoint commands and validates them against segments."""

    def validate(self, bp: GdbBreakpoint, segments: list[Segment]) -> None:
        """Check a breakpoint before it is sent.

        Raises:
            InvalidBreakpointError: On a negative offset or unknown segment
        """
        if bp.offset < 0:
            raise InvalidBreakpointError(f"negative offset {bp.offset}", bp.id)
        if bp.segment_id is not None and not 0 <= bp.segment_id < len(segments):
            raise InvalidBreakpointError(f"segment {bp.segment_id} is not loaded", bp.id)

    def set_command(self, bp: GdbBreakpoint) -> str:
        if bp.exception_mask is not None:
            return f"Z{EXCEPTION_BREAKPOINT},{bp.offset:x},0;X1,{bp.exception_mask:x}"
        if bp.segment_id is not None:
            return f"Z{SOFTWARE_BREAKPOINT},{bp.offset:x},{bp.segment_id:x}"
        return f"Z{SOFTWARE_BREAKPOINT},{bp.offset:x}"

    def remove_command(self, bp: GdbBreakpoint) -> str:
        if bp.exception_mask is not None:
            return f"z{EXCEPTION_BREAKPOINT},{bp.exception_mask:x}"
        return "z" + self.set_command(bp)[1:]

    def parse_command(self, command: str, breakpoint_id: int = 0) -> GdbBreakpoint:
        """Rebuild the breakpoint a ``Z``/``z`` command refers to.

        Raises:
            ValueError: If the command is not a breakpoint command
        """
        match = _SET_EXCEPTION_RE.match(command)
        if match:
            return GdbBreakpoint(
                id=breakpoint_id,
                offset=int(match.group(1), 16),
                exception_mask=int(match.group(2), 16),
            )
        match = _REMOVE_EXCEPTION_RE.match(command)
        if match:
            return GdbBreakpoint(id=breakpoint_id, offset=0, exception_mask=int(match.group(1), 16))
        match = _ADDRESS_RE.match(command)
        if match:
            segment = match.group(3)
            return GdbBreakpoint(
                id=breakpoint_id,
                offset=int(match.group(2), 16),
                segment_id=int(segment, 16) if segment is not None else None,
            )
        raise ValueError(f"Not a breakpoint command: {command!r}")
