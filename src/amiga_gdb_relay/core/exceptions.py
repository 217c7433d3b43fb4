"""Custom exception hierarchy for the GDB relay."""

from typing import Any


class GdbRelayError(Exception):
    """Base exception for all GDB relay errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ProtocolError(GdbRelayError):
    """The debug stub answered with an error packet."""

    pass


class GdbError(ProtocolError):
    """Error reply (``E<hex>``) received from the stub."""

    KNOWN_ERRORS: dict[str, str] = {
        "E01": "General error during processing",
        "E02": "Error during the packet parse",
        "E03": "Unsupported / unknown command",
        "E04": "Unknown register",
        "E05": "Invalid Frame Id",
        "E06": "Invalid memory location",
        "E07": "Address not safe for a set memory command",
        "E08": "Unknown breakpoint",
        "E09": "The maximum of breakpoints have been reached",
        "E0F": "Error during the packet parse for command send memory",
        "E10": "Unknown register",
        "E11": "Invalid Frame Id",
        "E12": "Invalid memory location",
        "E20": "Error during the packet parse for command set memory",
        "E21": "Missing end packet for a set memory message",
        "E22": "Address not safe for a set memory command",
        "E25": "Error during the packet parse for command set register",
        "E26": "Error during set register - unsupported register name",
        "E30": "Error during the packet parse for command get register",
        "E31": "Error during the vRun - empty arguments",
        "E32": "Error during the vRun - process already running",
        "E40": "Unable to load segments",
        "E41": "Thread command parse error",
    }

    def __init__(self, error_type: str):
        self.error_type = error_type.strip().upper()
        message = self.KNOWN_ERRORS.get(
            self.error_type, f"Error code received: '{self.error_type}'"
        )
        super().__init__(
            code="GDB_ERROR",
            message=message,
            details={"error_type": self.error_type},
        )


class UnexpectedReplyError(ProtocolError):
    """Reply does not match the grammar expected for the command."""

    def __init__(self, command: str, reply: str):
        super().__init__(
            code="UNEXPECTED_REPLY",
            message=f"Unexpected return message for '{command}': '{reply}'",
            details={"command": command, "reply": reply},
        )


class LegacyStubError(ProtocolError):
    """The stub is too old for this client."""

    def __init__(self, reason: str):
        super().__init__(
            code="BINARIES_ERROR",
            message=(
                "The debug stub binaries are too old for this debugger, "
                f"please update the emulator: {reason}"
            ),
            details={"reason": reason},
        )


class GdbValidationError(GdbRelayError):
    """Caller supplied invalid arguments; nothing was sent."""

    pass


class InvalidBreakpointError(GdbValidationError):
    """Breakpoint offset or segment is invalid."""

    def __init__(self, reason: str, breakpoint_id: int | None = None):
        super().__init__(
            code="INVALID_BREAKPOINT",
            message=f"Invalid breakpoint: {reason}",
            details={"breakpoint_id": breakpoint_id, "reason": reason},
        )


class InvalidRegisterError(GdbValidationError):
    """Register name is not in the catalog."""

    def __init__(self, name: str):
        super().__init__(
            code="INVALID_REGISTER",
            message=f"Unknown register '{name}'",
            details={"name": name},
        )


class ConnectionStateError(GdbRelayError):
    """Connection-related errors."""

    pass


class TransportError(ConnectionStateError):
    """Socket-level failure."""

    def __init__(self, reason: str):
        super().__init__(
            code="TRANSPORT_ERROR",
            message=f"Connection to the debug stub failed: {reason}",
            details={"reason": reason},
        )


class NotConnectedError(ConnectionStateError):
    """Operation attempted without an established session."""

    def __init__(self, operation: str):
        super().__init__(
            code="NOT_CONNECTED",
            message=f"Cannot {operation}: not connected to the debug stub",
            details={"operation": operation},
        )


class DisconnectedError(ConnectionStateError):
    """The connection was closed while a request was outstanding."""

    def __init__(self, command: str | None = None):
        super().__init__(
            code="DISCONNECTED",
            message="Disconnected from the debug stub",
            details={"command": command},
        )


class StubUnresponsiveError(ConnectionStateError):
    """The stub did not reply in time."""

    def __init__(self, command: str, timeout: float):
        super().__init__(
            code="STUB_UNRESPONSIVE",
            message=f"Debug stub did not answer '{command}' within {timeout}s",
            details={"command": command, "timeout": timeout},
        )


class InvalidStateError(ConnectionStateError):
    """Operation not valid in the current proxy state."""

    def __init__(self, current_state: str, required_states: list[str]):
        super().__init__(
            code="INVALID_STATE",
            message=f"Proxy is in state '{current_state}', "
            f"but operation requires: {required_states}",
            details={
                "current_state": current_state,
                "required_states": required_states,
            },
        )


class RequestInFlightError(GdbRelayError):
    """A command was sent while another reply is still awaited."""

    def __init__(self, command: str, pending: str):
        super().__init__(
            code="REQUEST_IN_FLIGHT",
            message=f"Cannot send '{command}' while '{pending}' awaits its reply",
            details={"command": command, "pending": pending},
        )


class ThreadNotFoundError(GdbRelayError):
    """Thread is not known to the registry."""

    def __init__(self, thread_id: str):
        super().__init__(
            code="THREAD_NOT_FOUND",
            message=f"Thread '{thread_id}' not found",
            details={"thread_id": thread_id},
        )


class BreakpointNotFoundError(GdbRelayError):
    """Breakpoint with given ID does not exist."""

    def __init__(self, breakpoint_id: int):
        super().__init__(
            code="BREAKPOINT_NOT_FOUND",
            message=f"Breakpoint '{breakpoint_id}' not found",
            details={"breakpoint_id": breakpoint_id},
        )
