# =============================================================================
# DISCLAIMER: This software is NOT a medical device and is NOT intended for
# medical monitoring, diagnosis, or treatment. This is a proof of concept for
# educational purposes only. Do not rely on this system for health decisions.
# =============================================================================
"""User settings endpoints."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

router = APIRouter()


class ScheduleUpdate(BaseModel):
    """Schedule fields to change."""

    start_time: Optional[str] = Field(None, pattern=r"^\d{1,2}:\d{2}$", description="HH:MM")
    end_time: Optional[str] = Field(None, pattern=r"^\d{1,2}:\d{2}$", description="HH:MM")
    weekdays: Optional[List[bool]] = Field(
        None,
        min_length=7,
        max_length=7,
        description="Seven flags, Sunday first",
    )


class SettingsUpdate(BaseModel):
    """Request body for updating user settings."""

    sensitivity: Optional[int] = Field(
        None,
        ge=1,
        le=10,
        description="Detection sensitivity (1-10), applied on the next start",
    )
    detection_mode: Optional[str] = Field(
        None,
        pattern="^(manual|auto)$",
        description="manual or auto (scheduled)",
    )
    schedule: Optional[ScheduleUpdate] = None
    data_retention_days: Optional[int] = Field(None, ge=1, le=3650)


@router.get("")
async def get_user_settings(request: Request):
    """Get current user settings."""
    controller = request.app.state.controller
    return controller.user_settings.settings.to_dict()


@router.put("")
async def update_user_settings(request: Request, update: SettingsUpdate):
    """Update user settings.

    Sensitivity changes apply the next time tracking starts.

    Returns:
        Updated settings
    """
    controller = request.app.state.controller
    data = update.model_dump(exclude_none=True)
    try:
        settings = controller.user_settings.update(data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return settings.to_dict()
