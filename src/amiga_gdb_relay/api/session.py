"""Session endpoints - connection, program load and stop events."""

from fastapi import APIRouter, Query

from amiga_gdb_relay.api.deps import SessionDep
from amiga_gdb_relay.core.session import DebugSession
from amiga_gdb_relay.models.requests import ConnectRequest, LoadRequest
from amiga_gdb_relay.models.responses import (
    EventListResponse,
    EventResponse,
    HaltStatusResponse,
    SessionResponse,
    ThreadListResponse,
    ThreadResponse,
)

router = APIRouter(prefix="/session", tags=["Session"])


def _make_session_response(session: DebugSession) -> SessionResponse:
    return SessionResponse(
        state=session.state.value,
        program=session.program,
        created_at=session.created_at,
        last_activity=session.last_activity,
        capabilities=session.proxy.capabilities,
        segments=session.proxy.segments,
        thread_count=len(session.proxy.threads),
    )


@router.get("", response_model=SessionResponse)
async def get_session(session: SessionDep) -> SessionResponse:
    """Get session details."""
    return _make_session_response(session)


@router.post("/connect", response_model=SessionResponse)
async def connect(
    session: SessionDep,
    request: ConnectRequest | None = None,
) -> SessionResponse:
    """Connect to the debug stub and negotiate the protocol."""
    host = request.host if request else None
    port = request.port if request else None
    await session.connect(host, port)
    return _make_session_response(session)


@router.post("/load", response_model=SessionResponse)
async def load(request: LoadRequest, session: SessionDep) -> SessionResponse:
    """Run a program in the emulator."""
    await session.load(request.program, request.stop_on_entry)
    return _make_session_response(session)


@router.post("/disconnect", response_model=SessionResponse)
async def disconnect(session: SessionDep) -> SessionResponse:
    """Close the connection to the debug stub."""
    await session.disconnect()
    return _make_session_response(session)


@router.get("/threads", response_model=ThreadListResponse)
async def get_threads(session: SessionDep) -> ThreadListResponse:
    """Get all threads reported by the stub."""
    current = session.proxy.current_cpu_thread
    return ThreadListResponse(
        threads=[ThreadResponse.from_thread(t) for t in session.proxy.threads.threads],
        current_cpu_thread=ThreadResponse.from_thread(current) if current else None,
    )


@router.get("/halt-status", response_model=HaltStatusResponse)
async def get_halt_status(session: SessionDep) -> HaltStatusResponse:
    """Get the stop reports of every stopped thread."""
    statuses = await session.proxy.get_halt_status()
    return HaltStatusResponse(statuses=statuses)


@router.get("/events", response_model=EventListResponse)
async def poll_events(
    session: SessionDep,
    timeout: float = Query(0, ge=0, le=30, description="Seconds to wait for an event"),
) -> EventListResponse:
    """Drain the stop-event channel."""
    session.touch()
    events = await session.proxy.events.get_all(timeout=timeout)
    return EventListResponse(
        events=[
            EventResponse(
                type=e.type.value,
                timestamp=e.timestamp,
                halt_status=e.halt_status,
                data=e.data,
            )
            for e in events
        ],
        pending=session.proxy.events.pending_count,
    )
