"""State inspection endpoints."""

from fastapi import APIRouter, Query, status

from amiga_gdb_relay.api.deps import SessionDep
from amiga_gdb_relay.models.requests import SetMemoryRequest, SetRegisterRequest
from amiga_gdb_relay.models.responses import (
    MemoryResponse,
    RegistersResponse,
    StackTraceResponse,
)

router = APIRouter(prefix="/session", tags=["Inspection"])


@router.get("/threads/{thread_id}/stack", response_model=StackTraceResponse)
async def get_stack_trace(thread_id: int, session: SessionDep) -> StackTraceResponse:
    """Get the stack positions of a thread."""
    thread = session.resolve_thread(thread_id)
    stack = await session.proxy.stack(thread)
    return StackTraceResponse(frames=stack.frames, total_frames=stack.count)


@router.get("/registers", response_model=RegistersResponse)
async def get_registers(
    session: SessionDep,
    thread_id: int | None = Query(None, description="Thread ID (current CPU thread if omitted)"),
) -> RegistersResponse:
    """Get the registers of a thread."""
    thread = session.resolve_thread(thread_id) if thread_id is not None else None
    registers = await session.proxy.registers(thread)
    return RegistersResponse(registers=registers)


@router.put("/registers/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def set_register(name: str, request: SetRegisterRequest, session: SessionDep) -> None:
    """Write a register of the current CPU thread."""
    await session.proxy.set_register(name, request.value)


@router.get("/memory", response_model=MemoryResponse)
async def get_memory(
    session: SessionDep,
    address: int = Query(..., ge=0, description="Start address"),
    length: int = Query(..., ge=1, le=0x10000, description="Number of bytes"),
) -> MemoryResponse:
    """Read memory."""
    data = await session.proxy.get_memory(address, length)
    return MemoryResponse(address=address, length=length, data=data)


@router.put("/memory", status_code=status.HTTP_204_NO_CONTENT)
async def set_memory(request: SetMemoryRequest, session: SessionDep) -> None:
    """Write memory."""
    await session.proxy.set_memory(request.address, request.data)
