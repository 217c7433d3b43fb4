"""Execution control endpoints."""

from fastapi import APIRouter

from amiga_gdb_relay.api.deps import SessionDep
from amiga_gdb_relay.models.requests import StepRangeRequest
from amiga_gdb_relay.models.responses import ExecutionResponse, ThreadResponse

router = APIRouter(prefix="/session/threads/{thread_id}", tags=["Execution"])


@router.post("/continue", response_model=ExecutionResponse)
async def continue_execution(thread_id: int, session: SessionDep) -> ExecutionResponse:
    """Continue a thread."""
    thread = session.resolve_thread(thread_id)
    await session.proxy.continue_execution(thread)
    return ExecutionResponse(status="running", thread=ThreadResponse.from_thread(thread))


@router.post("/pause", response_model=ExecutionResponse)
async def pause_execution(thread_id: int, session: SessionDep) -> ExecutionResponse:
    """Pause a thread."""
    thread = session.resolve_thread(thread_id)
    await session.proxy.pause(thread)
    return ExecutionResponse(status="pausing", thread=ThreadResponse.from_thread(thread))


@router.post("/step-in", response_model=ExecutionResponse)
async def step_in(thread_id: int, session: SessionDep) -> ExecutionResponse:
    """Step one instruction."""
    thread = session.resolve_thread(thread_id)
    await session.proxy.step_in(thread)
    return ExecutionResponse(status="stepping", thread=ThreadResponse.from_thread(thread))


@router.post("/step-range", response_model=ExecutionResponse)
async def step_to_range(
    thread_id: int,
    request: StepRangeRequest,
    session: SessionDep,
) -> ExecutionResponse:
    """Step while the pc stays inside an address range."""
    thread = session.resolve_thread(thread_id)
    await session.proxy.step_to_range(thread, request.start_address, request.end_address)
    return ExecutionResponse(status="stepping", thread=ThreadResponse.from_thread(thread))
