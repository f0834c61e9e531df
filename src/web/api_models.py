from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class ModeRequest(BaseModel):
    mode: str = Field(..., description="Vision mode name or animal alias (dog, bee, snake, bird)")


class ModeResponse(BaseModel):
    mode: str
    animal: str


class ZoomRequest(BaseModel):
    factor: float = Field(..., description="Requested zoom; clamped to the device range")


class ZoomResponse(BaseModel):
    requested: float
    applied: float


class ActionResponse(BaseModel):
    ok: bool = True
    detail: Optional[str] = None


class StatusResponse(BaseModel):
    """Snapshot polled by control clients."""
    running: bool = Field(..., description="True if frames arrived recently")
    mode: str
    camera: Dict[str, object]
    recording: Dict[str, object]
    native_resolution: List[int]
    pending_requests: List[str] = Field(default_factory=list)
    processor: Dict[str, int] = Field(default_factory=dict)
    last_frame_age_s: Optional[float] = Field(None, description="Seconds since last preview frame")
    last_recording: Optional[str] = None
    uptime_seconds: Optional[float] = None
