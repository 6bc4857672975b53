# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""Status endpoint - live view polled by the dashboard."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/status")
async def get_status(request: Request):
    """Get overall tracking status.

    Returns:
        TrackingStatus with:
        - tracking: True while a session is running
        - loop_state: idle or listening
        - source: audio or synthetic
        - session_id / session_start
        - sensitivity used for this session
        - alert_level: normal, warning or danger
        - stats: live session statistics
        - last_event: most recent detection event
    """
    controller = request.app.state.controller
    return controller.get_status().to_dict()
