"""RSP value models exchanged with the front-end."""

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field


class ProxyState(str, Enum):
    """Possible proxy connection states."""

    IDLE = "idle"
    CONNECTING = "connecting"
    NEGOTIATING = "negotiating"
    READY = "ready"
    LOADED = "loaded"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class ThreadKind(str, Enum):
    """Logical execution context of a stub thread."""

    CPU = "cpu"
    COPPER = "copper"
    OTHER = "other"


class SysThreadId(IntEnum):
    """Thread ids reported by the Amiga stub."""

    AUD0 = 0
    AUD1 = 1
    AUD2 = 2
    AUD3 = 3
    DSK = 4
    SPR = 5
    BLT = 6
    COP = 7
    BPL = 8
    CPU = 15


DEFAULT_PROCESS_ID = 1


class GdbThread(BaseModel):
    """A stub thread, identified by value."""

    model_config = ConfigDict(frozen=True)

    process_id: int = DEFAULT_PROCESS_ID
    thread_id: int

    @property
    def kind(self) -> ThreadKind:
        if self.thread_id == SysThreadId.CPU:
            return ThreadKind.CPU
        if self.thread_id == SysThreadId.COP:
            return ThreadKind.COPPER
        return ThreadKind.OTHER

    @property
    def name(self) -> str:
        try:
            return SysThreadId(self.thread_id).name.lower()
        except ValueError:
            return f"thread-{self.thread_id:x}"

    @property
    def key(self) -> tuple[int, int]:
        return (self.process_id, self.thread_id)


class Capabilities(BaseModel):
    """Features negotiated with ``qSupported``."""

    multiprocess: bool = False
    vcont: bool = False
    no_ack_mode: bool = False
    non_stop: bool = False
    features: dict[str, str] = Field(default_factory=dict)


class Segment(BaseModel):
    """Memory segment of the loaded program."""

    id: int
    name: str
    address: int


class GdbBreakpoint(BaseModel):
    """Breakpoint as tracked by the front-end.

    ``segment_id`` absent means ``offset`` is an absolute address.
    ``exception_mask`` set makes it an exception breakpoint.
    """

    id: int
    segment_id: int | None = None
    offset: int
    exception_mask: int | None = None
    verified: bool = False
    message: str | None = None


class Register(BaseModel):
    """A named register value."""

    name: str
    value: int


class StackPosition(BaseModel):
    """One position of a stack frame listing."""

    index: int
    segment_id: int
    offset: int
    pc: int
    stack_frame_index: int


class StackFrame(BaseModel):
    """Stack positions of a thread."""

    frames: list[StackPosition] = Field(default_factory=list)
    count: int = 0


class HaltStatus(BaseModel):
    """Stop report of a thread."""

    code: int
    thread: GdbThread | None = None
    reason: str | None = None
    registers: dict[int, int] = Field(default_factory=dict)
    details: dict[str, str] = Field(default_factory=dict)
    exited: bool = False
