"""Breakpoint management endpoints."""

from fastapi import APIRouter, status

from amiga_gdb_relay.api.deps import SessionDep
from amiga_gdb_relay.models.gdb import GdbBreakpoint
from amiga_gdb_relay.models.requests import AddBreakpointRequest
from amiga_gdb_relay.models.responses import BreakpointListResponse

router = APIRouter(prefix="/session/breakpoints", tags=["Breakpoints"])


@router.post("", response_model=GdbBreakpoint, status_code=status.HTTP_201_CREATED)
async def add_breakpoint(request: AddBreakpointRequest, session: SessionDep) -> GdbBreakpoint:
    """Add a breakpoint.

    Breakpoints added before a program is loaded are sent on load.
    """
    return await session.add_breakpoint(
        offset=request.offset,
        segment_id=request.segment_id,
        exception_mask=request.exception_mask,
    )


@router.get("", response_model=BreakpointListResponse)
async def list_breakpoints(session: SessionDep) -> BreakpointListResponse:
    """List all breakpoints of the session."""
    breakpoints = session.breakpoints
    return BreakpointListResponse(breakpoints=breakpoints, total=len(breakpoints))


@router.get("/{breakpoint_id}", response_model=GdbBreakpoint)
async def get_breakpoint(breakpoint_id: int, session: SessionDep) -> GdbBreakpoint:
    """Get one breakpoint."""
    return session.get_breakpoint(breakpoint_id)


@router.delete("/{breakpoint_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_breakpoint(breakpoint_id: int, session: SessionDep) -> None:
    """Remove a breakpoint."""
    await session.remove_breakpoint(breakpoint_id)
