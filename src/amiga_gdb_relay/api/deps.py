"""API dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from amiga_gdb_relay.core.session import DebugSession


async def get_session(request: Request) -> DebugSession:
    """Get the debug session from app state."""
    session: DebugSession = request.app.state.session
    return session


SessionDep = Annotated[DebugSession, Depends(get_session)]
