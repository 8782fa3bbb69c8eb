"""Overlay endpoints: session controls, surface snapshot, MJPEG and WebRTC."""

import asyncio
import base64
import logging

from aiortc import RTCPeerConnection, RTCSessionDescription
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from overlay.models import ConnectionState
from overlay.session import InspectionSession

from ..config import Settings
from ..streams import SurfaceVideoTrack, get_relay
from ..ui import WebUI

logger = logging.getLogger("server.routers.overlay")
router = APIRouter(prefix="/api/overlay", tags=["overlay"])

# Track active peer connections for cleanup
_pcs: set[RTCPeerConnection] = set()


class ControlResponse(BaseModel):
    status: str
    message: str


class SnapshotResponse(BaseModel):
    image_b64: str
    width: int
    height: int


class WebRTCOffer(BaseModel):
    sdp: str
    type: str


class WebRTCAnswer(BaseModel):
    sdp: str
    type: str


def _get_session(request: Request) -> InspectionSession:
    return request.app.state.session


def _require_unlocked(session: InspectionSession):
    if session.view.connection_state is not ConnectionState.CONNECTED:
        raise HTTPException(
            409, f"Controls locked: machine is {session.view.connection_state.value}"
        )


@router.get("/status")
async def overlay_status(request: Request):
    session = _get_session(request)
    ui: WebUI = request.app.state.ui
    return {**session.status(), "ui": ui.to_dict()}


@router.post("/start", response_model=ControlResponse)
async def start(request: Request):
    session = _get_session(request)
    _require_unlocked(session)
    await session.start()
    return ControlResponse(status="success", message="Polling for detections")


@router.post("/stop", response_model=ControlResponse)
async def stop(request: Request):
    session = _get_session(request)
    _require_unlocked(session)
    await session.stop()
    return ControlResponse(status="success", message="Stopped")


@router.post("/reset", response_model=ControlResponse)
async def reset(request: Request):
    session = _get_session(request)
    _require_unlocked(session)
    await session.reset()
    return ControlResponse(status="success", message="Reset to home position")


@router.post("/stream/start", response_model=ControlResponse)
async def start_stream(request: Request):
    session = _get_session(request)
    _require_unlocked(session)
    await session.start_stream()
    return ControlResponse(status="success", message="Streaming live video")


@router.post("/stream/stop", response_model=ControlResponse)
async def stop_stream(request: Request):
    session = _get_session(request)
    await session.stop_stream()
    return ControlResponse(status="success", message="Stream stopped")


@router.get("/snapshot", response_model=SnapshotResponse)
async def snapshot(request: Request):
    """Current surface as a base64 JPEG."""
    session = _get_session(request)
    settings: Settings = request.app.state.settings
    jpg = session.renderer.encode_jpeg(settings.jpeg_quality)
    if jpg is None:
        raise HTTPException(status_code=503, detail="Nothing rendered yet")
    surface = session.renderer.surface
    return SnapshotResponse(
        image_b64=base64.b64encode(jpg).decode(),
        width=surface.width,
        height=surface.height,
    )


async def _mjpeg_generator(session: InspectionSession, quality: int, interval_s: float):
    while True:
        jpg = session.renderer.encode_jpeg(quality)
        if jpg is not None:
            yield (
                b"--frame\r\n"
                b"Content-Type: image/jpeg\r\n"
                b"Content-Length: " + str(len(jpg)).encode() + b"\r\n\r\n"
                + jpg + b"\r\n"
            )
        await asyncio.sleep(interval_s)


@router.get("/mjpeg")
async def mjpeg_stream(request: Request):
    """Multipart MJPEG stream of the overlay surface."""
    session = _get_session(request)
    settings: Settings = request.app.state.settings
    return StreamingResponse(
        _mjpeg_generator(session, settings.jpeg_quality, settings.stream_tick_ms / 1000),
        media_type="multipart/x-mixed-replace; boundary=frame",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "Pragma": "no-cache",
        },
    )


@router.post("/webrtc/offer", response_model=WebRTCAnswer)
async def webrtc_offer(body: WebRTCOffer, request: Request):
    """WebRTC signaling: receive SDP offer, return SDP answer."""
    session = _get_session(request)
    settings: Settings = request.app.state.settings
    relay = get_relay()

    offer = RTCSessionDescription(sdp=body.sdp, type=body.type)
    pc = RTCPeerConnection()
    _pcs.add(pc)

    @pc.on("connectionstatechange")
    async def on_state_change():
        logger.info(f"WebRTC connection state: {pc.connectionState}")
        if pc.connectionState in ("failed", "closed", "disconnected"):
            await pc.close()
            _pcs.discard(pc)

    track = SurfaceVideoTrack(session.renderer, settings.stream_width, settings.stream_height)
    pc.addTrack(relay.subscribe(track))

    await pc.setRemoteDescription(offer)
    answer = await pc.createAnswer()
    await pc.setLocalDescription(answer)

    return WebRTCAnswer(
        sdp=pc.localDescription.sdp,
        type=pc.localDescription.type,
    )


async def close_peer_connections():
    for pc in list(_pcs):
        await pc.close()
    _pcs.clear()
