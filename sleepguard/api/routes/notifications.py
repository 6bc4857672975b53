# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""User notification endpoints."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("")
async def get_notifications(request: Request, since_id: int = 0, limit: int = 20):
    """Recent notices, newest first."""
    notifier = request.app.state.controller.notifier
    return {"notifications": [n.to_dict() for n in notifier.recent(limit=limit, since_id=since_id)]}


@router.delete("")
async def clear_notifications(request: Request):
    """Dismiss all notices."""
    request.app.state.controller.notifier.clear()
    return {"status": "cleared"}
