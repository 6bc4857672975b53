# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Session recording endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request

router = APIRouter()


@router.get("")
async def list_recordings(request: Request, owner_id: Optional[str] = None, limit: int = 50):
    """List stored recordings, newest first."""
    database = request.app.state.database
    recordings = await database.get_recordings(owner_id=owner_id, limit=limit)
    return {"recordings": recordings, "count": len(recordings)}


@router.delete("/{recording_id}")
async def delete_recording(request: Request, recording_id: str):
    """Delete one recording and its audio file."""
    database = request.app.state.database
    if not await database.delete_recording(recording_id):
        raise HTTPException(status_code=404, detail="Recording not found")
    return {"status": "deleted"}
