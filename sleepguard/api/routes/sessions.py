# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Session history endpoints."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request

router = APIRouter()


@router.get("")
async def list_sessions(request: Request, owner_id: Optional[str] = None, limit: int = 50):
    """List persisted sessions, newest first."""
    database = request.app.state.database
    sessions = await database.get_sessions(owner_id=owner_id, limit=limit)
    return {"sessions": sessions, "count": len(sessions)}


@router.get("/{session_id}")
async def get_session(request: Request, session_id: str):
    """Session results with statistics recomputed from its events."""
    database = request.app.state.database
    summary = await database.get_session_summary(session_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return summary


@router.get("/{session_id}/events")
async def get_session_events(request: Request, session_id: str, limit: int = 10000):
    """Events of one persisted session in order."""
    database = request.app.state.database
    if await database.get_session(session_id) is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"events": await database.get_session_events(session_id, limit=limit)}


@router.delete("")
async def delete_sessions(request: Request, owner_id: Optional[str] = None):
    """Delete session history (all sessions, or one owner's)."""
    database = request.app.state.database
    deleted = await database.delete_sessions(owner_id=owner_id)
    return {"status": "deleted", "count": deleted}
