"""Notifications API endpoints."""

import logging
from typing import Dict, Any

from fastapi import APIRouter, HTTPException, Request, Security, status
from pydantic import BaseModel

from auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"]
)

class ReadAllResponse(BaseModel):
    """Response model for marking notifications read."""
    message: str
    updated: int

@router.get("")
async def get_notifications(
    request: Request,
    user: Dict[str, Any] = Security(get_current_user)
):
    """Get the current user's latest notifications and their unread count."""
    services = request.app.state.services
    try:
        notifications = await services.notifications.list_for_user(
            user['id'],
            limit=services.settings['notification_limit']
        )
        unread_count = await services.notifications.unread_count(user['id'])
        return {
            "notifications": notifications,
            "unread_count": unread_count
        }
    except Exception as e:
        logger.error(f"Error getting notifications: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

@router.put("/read-all", response_model=ReadAllResponse)
async def mark_all_read(
    request: Request,
    user: Dict[str, Any] = Security(get_current_user)
):
    """Mark every notification of the current user as read."""
    try:
        updated = await request.app.state.services.notifications.mark_all_read(user['id'])
        return {
            "message": "All notifications marked as read",
            "updated": updated
        }
    except Exception as e:
        logger.error(f"Error marking notifications read: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server error"
        )

# Export the router
__all__ = ['router']
