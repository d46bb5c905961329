"""Field validation for food listings.

Both stores run every write through these helpers so the PostgreSQL and
in-memory backends accept exactly the same input.
"""

from typing import Dict, Any, Optional

from .exceptions import FoodValidationError

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500

# User-mutable fields for listings
MUTABLE_FIELDS = {
    'name',
    'description',
    'photo_ref',
    'address',
    'latitude',
    'longitude'
}


def _parse_coordinate(value: Any, label: str, limit: float) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise FoodValidationError(f"{label} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise FoodValidationError(f"{label} must be a number")
    if number != number or not -limit <= number <= limit:
        raise FoodValidationError(f"{label} must be between {-limit:g} and {limit:g}")
    return number


def clean_listing_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and normalise a complete set of listing fields.

    Args:
        fields: Mapping with name, address and optionally description,
            photo_ref, latitude and longitude

    Returns:
        Dict with every key of MUTABLE_FIELDS, strings trimmed

    Raises:
        FoodValidationError: If name or address is missing or a value is out of range
    """
    name = fields.get('name')
    address = fields.get('address')
    name = name.strip() if isinstance(name, str) else ''
    address = address.strip() if isinstance(address, str) else ''

    if not name or not address:
        raise FoodValidationError("Please provide food name and address")
    if len(name) > NAME_MAX_LENGTH:
        raise FoodValidationError(f"Name must be at most {NAME_MAX_LENGTH} characters")

    description = fields.get('description') or ''
    if not isinstance(description, str):
        raise FoodValidationError("Description must be text")
    description = description.strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise FoodValidationError(
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters"
        )

    latitude = _parse_coordinate(fields.get('latitude'), 'Latitude', 90)
    longitude = _parse_coordinate(fields.get('longitude'), 'Longitude', 180)
    if (latitude is None) != (longitude is None):
        raise FoodValidationError("Latitude and longitude must be given together")

    photo_ref = fields.get('photo_ref') or None
    if photo_ref is not None and not isinstance(photo_ref, str):
        raise FoodValidationError("Photo reference must be text")

    return {
        'name': name,
        'description': description,
        'photo_ref': photo_ref,
        'address': address,
        'latitude': latitude,
        'longitude': longitude
    }


def clean_listing_patch(current: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a partial update against the listing it applies to.

    The patch is merged over the current values and the result re-validated,
    so clearing the address or sending one coordinate alone is rejected.

    Returns:
        Only the patched fields, normalised

    Raises:
        FoodValidationError: If the patch names a non-mutable field or the
            merged listing is invalid
    """
    invalid_fields = set(patch) - MUTABLE_FIELDS
    if invalid_fields:
        raise FoodValidationError(f"Cannot update fields: {', '.join(sorted(invalid_fields))}")

    merged = {field: current.get(field) for field in MUTABLE_FIELDS}
    merged.update(patch)
    cleaned = clean_listing_fields(merged)
    return {field: cleaned[field] for field in patch}
