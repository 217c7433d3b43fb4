"""API request models."""

import re

from pydantic import BaseModel, Field, field_validator, model_validator

_HEX_RE = re.compile(r"^([0-9a-fA-F]{2})*$")


class ConnectRequest(BaseModel):
    """Request to connect to the debug stub."""

    host: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)


class LoadRequest(BaseModel):
    """Request to run a program in the emulator."""

    program: str = Field(min_length=1)
    stop_on_entry: bool = False


class AddBreakpointRequest(BaseModel):
    """Request to add a breakpoint.

    Without ``segment_id`` the offset is an absolute address. An
    ``exception_mask`` makes it an exception breakpoint.
    """

    offset: int = 0
    segment_id: int | None = Field(default=None, ge=0)
    exception_mask: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_kind(self) -> "AddBreakpointRequest":
        if self.exception_mask is not None and self.segment_id is not None:
            raise ValueError("An exception breakpoint cannot have a segment")
        return self


class StepRangeRequest(BaseModel):
    """Request to step while the pc is inside an address range."""

    start_address: int = Field(ge=0)
    end_address: int = Field(ge=0)


class SetRegisterRequest(BaseModel):
    """Request to write a register."""

    value: str = Field(description="Hex value")

    @field_validator("value")
    @classmethod
    def check_hex(cls, v: str) -> str:
        if not v or not re.fullmatch(r"[0-9a-fA-F]+", v):
            raise ValueError("value must be a hex string")
        return v


class SetMemoryRequest(BaseModel):
    """Request to write memory."""

    address: int = Field(ge=0)
    data: str = Field(min_length=2, description="Hex bytes")

    @field_validator("data")
    @classmethod
    def check_hex(cls, v: str) -> str:
        if not _HEX_RE.match(v):
            raise ValueError("data must be an even-length hex string")
        return v
