"""Debug event models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from amiga_gdb_relay.models.gdb import HaltStatus


class EventType(str, Enum):
    """Types of debug events."""

    STOPPED = "stopped"
    EXITED = "exited"
    DISCONNECTED = "disconnected"


class DebugEvent(BaseModel):
    """Debug event published by the proxy."""

    type: EventType
    timestamp: datetime
    halt_status: HaltStatus | None = None
    data: dict[str, Any] = Field(default_factory=dict)
