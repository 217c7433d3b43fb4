"""API response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from amiga_gdb_relay.models.gdb import (
    Capabilities,
    GdbBreakpoint,
    GdbThread,
    HaltStatus,
    Register,
    Segment,
    StackPosition,
)

# Server responses


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    state: str


class InfoResponse(BaseModel):
    """Server information response."""

    name: str
    version: str
    python_version: str
    stub_host: str
    stub_port: int
    remote_program_prefix: str


# Thread responses


class ThreadResponse(BaseModel):
    """Thread information."""

    process_id: int
    thread_id: int
    name: str
    kind: str

    @classmethod
    def from_thread(cls, thread: GdbThread) -> "ThreadResponse":
        return cls(
            process_id=thread.process_id,
            thread_id=thread.thread_id,
            name=thread.name,
            kind=thread.kind.value,
        )


class ThreadListResponse(BaseModel):
    """List of threads."""

    threads: list[ThreadResponse]
    current_cpu_thread: ThreadResponse | None = None


# Session responses


class SessionResponse(BaseModel):
    """Session information response."""

    state: str
    program: str | None = None
    created_at: datetime
    last_activity: datetime
    capabilities: Capabilities
    segments: list[Segment] = Field(default_factory=list)
    thread_count: int = 0


# Breakpoint responses


class BreakpointListResponse(BaseModel):
    """List of breakpoints."""

    breakpoints: list[GdbBreakpoint]
    total: int


# Execution responses


class ExecutionResponse(BaseModel):
    """Response for execution control operations."""

    status: str
    thread: ThreadResponse


class HaltStatusResponse(BaseModel):
    """Stop reports of all stopped threads."""

    statuses: list[HaltStatus]


# Inspection responses


class RegistersResponse(BaseModel):
    """Register values of a thread."""

    registers: list[Register]


class StackTraceResponse(BaseModel):
    """Stack positions of a thread."""

    frames: list[StackPosition]
    total_frames: int


class MemoryResponse(BaseModel):
    """Memory contents as a hex string."""

    address: int
    length: int
    data: str


# Event responses


class EventResponse(BaseModel):
    """Stop-event channel entry."""

    type: str
    timestamp: datetime
    halt_status: HaltStatus | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class EventListResponse(BaseModel):
    """Events drained from the channel."""

    events: list[EventResponse]
    pending: int
