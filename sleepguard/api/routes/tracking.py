# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Tracking start/stop endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from sleepguard.config import OWNER_ID_PATTERN
from sleepguard.errors import SessionAlreadyActiveError

router = APIRouter()


class StartRequest(BaseModel):
    """Request body for starting a session."""

    owner_id: Optional[str] = Field(
        None,
        pattern=OWNER_ID_PATTERN,
        description="Owner recorded on the persisted session (default: configured owner). "
                    "Letters, digits, underscore and hyphen only.",
    )


@router.post("/start")
async def start_tracking(request: Request, body: Optional[StartRequest] = None):
    """Start a tracking session.

    Falls back to simulated events if the microphone is unavailable; the
    status `source` field shows which one is in use.

    Raises:
        409 if a session is already running
    """
    controller = request.app.state.controller
    owner_id = body.owner_id if body else None
    try:
        handle = await controller.start_tracking(owner_id=owner_id)
    except SessionAlreadyActiveError as e:
        raise HTTPException(status_code=409, detail=str(e))

    status = controller.get_status().to_dict()
    status["session_id"] = handle.session_id
    return status


@router.post("/stop")
async def stop_tracking(request: Request):
    """Stop the running session.

    Returns the finalized session. Stopping when nothing is running is not
    an error; `stopped` is false in that case.
    """
    controller = request.app.state.controller
    finalized = await controller.stop_tracking()
    if finalized is None:
        return {"stopped": False, "session": None}
    return {"stopped": True, "session": finalized.to_dict(include_events=False)}


@router.get("/events")
async def get_events(request: Request, limit: int = 100):
    """Events of the current (or most recent) session, newest first."""
    controller = request.app.state.controller
    return {"events": controller.get_events(limit=limit)}
