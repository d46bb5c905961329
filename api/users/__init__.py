"""User dashboard API endpoints."""

import logging
from typing import Dict, Any

from fastapi import APIRouter, HTTPException, Request, Security, status
from pydantic import BaseModel

from auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)

class StatsResponse(BaseModel):
    """Response model for user statistics."""
    food_shared: int
    food_claimed: int
    completed_donations: int
    completed_pickups: int
    total_completed: int


def _server_error(e: Exception, action: str) -> HTTPException:
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Server error"
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    request: Request,
    user: Dict[str, Any] = Security(get_current_user)
):
    """Counts of food shared, claimed and completed by the current user."""
    try:
        return await request.app.state.services.listings.stats(user['id'])
    except Exception as e:
        raise _server_error(e, "getting user stats")

@router.get("/my-food")
async def get_my_food(
    request: Request,
    user: Dict[str, Any] = Security(get_current_user)
):
    """Listings the current user donated, newest first."""
    try:
        return await request.app.state.services.listings.list_by_donor(user['id'])
    except Exception as e:
        raise _server_error(e, "getting donated food")

@router.get("/my-claims")
async def get_my_claims(
    request: Request,
    user: Dict[str, Any] = Security(get_current_user)
):
    """Listings the current user claimed, newest first."""
    try:
        return await request.app.state.services.listings.list_by_claimer(user['id'])
    except Exception as e:
        raise _server_error(e, "getting claimed food")

@router.get("/me")
async def get_me(user: Dict[str, Any] = Security(get_current_user)):
    """The authenticated user."""
    return user

# Export the router
__all__ = ['router']
