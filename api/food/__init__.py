"""Food listing API endpoints."""

import logging
from typing import Optional, Dict, Any

from fastapi import (
    APIRouter, HTTPException, Request, Security, UploadFile, File, Form, status
)

from auth import get_current_user
from food import (
    FoodValidationError, FoodNotFoundError, ForbiddenError,
    ClaimOwnListingError, InvalidStateError, PhotoUpload
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/food",
    tags=["Food"]
)


def http_error(e: Exception, action: str) -> HTTPException:
    """Map a food exception to the HTTP error returned to the client."""
    if isinstance(e, (FoodValidationError, ClaimOwnListingError, InvalidStateError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, FoodNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, ForbiddenError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Server error"
    )


async def read_photo(photo: Optional[UploadFile], max_bytes: int) -> Optional[PhotoUpload]:
    """Read an uploaded file; an empty file part counts as no photo.

    At most max_bytes + 1 bytes are read, enough for the size check to
    reject an oversized upload without buffering all of it.
    """
    if photo is None or not photo.filename:
        return None
    content = await photo.read(max_bytes + 1)
    return PhotoUpload(photo.filename, photo.content_type, content)


def _lifecycle(request: Request):
    return request.app.state.services.lifecycle


""" Public Endpoints - No Authentication Required """
@router.get("")
async def list_available(request: Request):
    """Get available listings, newest first."""
    try:
        return await _lifecycle(request).list_available()
    except Exception as e:
        raise http_error(e, "listing available food")

@router.get("/all")
async def list_all(request: Request):
    """Get every listing regardless of status, newest first."""
    try:
        return await _lifecycle(request).list_all()
    except Exception as e:
        raise http_error(e, "listing food")

@router.get("/{listing_id}")
async def get_listing(listing_id: str, request: Request):
    """Get a listing by ID."""
    try:
        return await _lifecycle(request).get(listing_id)
    except Exception as e:
        raise http_error(e, "getting food listing")

""" Protected Endpoints - Authentication Required """
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_listing(
    request: Request,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    latitude: Optional[str] = Form(None),
    longitude: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Security(get_current_user)
):
    """Share food. The photo is optional."""
    try:
        return await _lifecycle(request).create(
            {
                'name': name,
                'description': description,
                'address': address,
                'latitude': latitude,
                'longitude': longitude
            },
            user,
            photo=await read_photo(photo, request.app.state.services.settings['max_upload_bytes'])
        )
    except Exception as e:
        raise http_error(e, "creating food listing")

@router.put("/{listing_id}")
async def update_listing(
    listing_id: str,
    request: Request,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    latitude: Optional[str] = Form(None),
    longitude: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    user: Dict[str, Any] = Security(get_current_user)
):
    """Update a listing you donated. Only the fields sent are changed."""
    fields = {
        'name': name,
        'description': description,
        'address': address,
        'latitude': latitude,
        'longitude': longitude
    }
    patch = {field: value for field, value in fields.items() if value is not None}
    try:
        return await _lifecycle(request).update(
            listing_id, patch, user,
            photo=await read_photo(photo, request.app.state.services.settings['max_upload_bytes'])
        )
    except Exception as e:
        raise http_error(e, "updating food listing")

@router.delete("/{listing_id}")
async def delete_listing(
    listing_id: str,
    request: Request,
    user: Dict[str, Any] = Security(get_current_user)
):
    """Delete a listing you donated."""
    try:
        await _lifecycle(request).delete(listing_id, user)
        return {"message": "Food listing removed"}
    except Exception as e:
        raise http_error(e, "deleting food listing")

@router.post("/{listing_id}/claim")
async def claim_listing(
    listing_id: str,
    request: Request,
    user: Dict[str, Any] = Security(get_current_user)
):
    """Claim an available listing. The donor is notified."""
    try:
        return await _lifecycle(request).claim(listing_id, user)
    except Exception as e:
        raise http_error(e, "claiming food")

@router.put("/{listing_id}/complete")
async def complete_listing(
    listing_id: str,
    request: Request,
    user: Dict[str, Any] = Security(get_current_user)
):
    """Mark a claimed listing as picked up. Donor only; the claimer is notified."""
    try:
        return await _lifecycle(request).complete(listing_id, user)
    except Exception as e:
        raise http_error(e, "completing food pickup")

# Export the router
__all__ = ['router', 'http_error']
