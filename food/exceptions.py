"""Exceptions raised by food listing operations."""


class FoodError(Exception):
    """Base exception for food listing operations."""
    pass


class FoodValidationError(FoodError):
    """Raised when a required field is missing or a value is malformed."""
    pass


class FoodNotFoundError(FoodError):
    """Raised when a listing is not found."""
    pass


class ForbiddenError(FoodError):
    """Raised when the caller has no rights over the listing."""
    pass


class ClaimOwnListingError(ForbiddenError):
    """Raised when a donor tries to claim their own listing."""
    pass


class InvalidStateError(FoodError):
    """Raised when a status transition is illegal from the current status."""
    pass
