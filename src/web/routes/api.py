from __future__ import annotations

import time
from typing import Optional

import cv2
from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from models.vision_mode import VisionMode
from pipeline.requests import ControlRequest
from ..api_models import (
    ActionResponse,
    ModeRequest,
    ModeResponse,
    StatusResponse,
    ZoomRequest,
    ZoomResponse,
)
from ..state import state

router = APIRouter()

# Frames older than this mark the pipeline as not running
STALE_FRAME_SECONDS = 2.0


def _runtime():
    runtime = state.runtime
    if runtime is None:
        raise HTTPException(status_code=503, detail="Pipeline is not running")
    return runtime


def _last_frame_age(stats: dict) -> Optional[float]:
    last_ts = stats.get("last_frame_ts")
    if last_ts is None:
        return None
    return max(0.0, time.time() - last_ts)


@router.get("/health")
def health():
    return {"ok": True, "pipeline": state.runtime is not None}


@router.get("/status", response_model=StatusResponse)
def status():
    runtime = _runtime()
    snapshot = runtime.status()
    stats = state.get_system_stats_copy()
    age = _last_frame_age(stats)

    return StatusResponse(
        running=age is not None and age <= STALE_FRAME_SECONDS,
        mode=snapshot["mode"],
        camera=snapshot["camera"],
        recording=snapshot["recording"],
        native_resolution=snapshot["native_resolution"],
        pending_requests=snapshot["pending_requests"],
        processor=snapshot["processor"],
        last_frame_age_s=age,
        last_recording=stats.get("last_recording"),
        uptime_seconds=snapshot.get("uptime_seconds"),
    )


@router.post("/mode", response_model=ModeResponse)
def set_mode(req: ModeRequest):
    runtime = _runtime()
    try:
        mode = VisionMode.parse(req.mode)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    runtime.set_mode(mode)
    return ModeResponse(mode=mode.name, animal=mode.animal)


@router.post("/capture", response_model=ActionResponse)
def capture():
    runtime = _runtime()
    runtime.request(ControlRequest.CAPTURE)
    return ActionResponse(detail="capture requested")


@router.post("/recording/start", response_model=ActionResponse)
def start_recording():
    runtime = _runtime()
    if not runtime.recorder.is_idle:
        raise HTTPException(status_code=409, detail="Recording already in progress")
    runtime.request(ControlRequest.START_RECORDING)
    return ActionResponse(detail="recording start requested")


@router.post("/recording/stop", response_model=ActionResponse)
def stop_recording():
    runtime = _runtime()
    if not runtime.recorder.is_active:
        raise HTTPException(status_code=409, detail="Not recording")
    runtime.request(ControlRequest.STOP_RECORDING)
    return ActionResponse(detail="recording stop requested")


@router.post("/camera/switch", response_model=ActionResponse)
def switch_camera():
    runtime = _runtime()
    runtime.request(ControlRequest.SWITCH_CAMERA)
    return ActionResponse(detail="camera switch requested")


@router.post("/camera/zoom", response_model=ZoomResponse)
def zoom(req: ZoomRequest):
    runtime = _runtime()
    applied = runtime.apply_zoom(req.factor)
    return ZoomResponse(requested=req.factor, applied=applied)


@router.get("/camera/snapshot.jpg")
def camera_snapshot():
    frame = state.get_frame()
    if frame is None:
        raise HTTPException(status_code=503, detail="No frame available yet")
    ok, buf = cv2.imencode(".jpg", frame)
    if not ok:
        raise HTTPException(status_code=500, detail="JPEG encoding failed")

    return StreamingResponse(
        iter([buf.tobytes()]),
        media_type="image/jpeg",
        headers={"Cache-Control": "no-store"},
    )


@router.get("/camera/live.mjpg")
def camera_live_stream(fps: int = 10):
    """
    Stream MJPEG frames from the shared state (populated by the frame processor).
    """
    fps = max(1, min(30, int(fps)))
    delay = 1.0 / fps

    def gen():
        while True:
            frame = state.get_frame()
            if frame is None:
                time.sleep(0.1)
                continue

            ok, buf = cv2.imencode(".jpg", frame)
            if not ok:
                time.sleep(delay)
                continue
            jpg = buf.tobytes()
            yield b"--frame\r\nContent-Type: image/jpeg\r\n\r\n" + jpg + b"\r\n"
            time.sleep(delay)

    return StreamingResponse(gen(), media_type="multipart/x-mixed-replace; boundary=frame")
