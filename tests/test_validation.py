"""Tests for listing field validation."""

import pytest

from food import FoodValidationError
from food.validation import clean_listing_fields, clean_listing_patch, NAME_MAX_LENGTH

VALID = {"name": "Soup", "address": "1 Oak Rd"}


def test_minimal_fields_are_completed_with_defaults():
    cleaned = clean_listing_fields({"name": "  Soup ", "address": " 1 Oak Rd "})
    assert cleaned == {
        "name": "Soup",
        "description": "",
        "photo_ref": None,
        "address": "1 Oak Rd",
        "latitude": None,
        "longitude": None
    }

@pytest.mark.parametrize("fields", [
    {"address": "1 Oak Rd"},
    {"name": "Soup"},
    {"name": "   ", "address": "1 Oak Rd"},
    {"name": "Soup", "address": ""},
])
def test_name_and_address_are_required(fields):
    with pytest.raises(FoodValidationError, match="Please provide food name and address"):
        clean_listing_fields(fields)

def test_name_length_is_limited():
    with pytest.raises(FoodValidationError):
        clean_listing_fields({**VALID, "name": "x" * (NAME_MAX_LENGTH + 1)})

def test_coordinates_are_parsed_from_form_strings():
    cleaned = clean_listing_fields({**VALID, "latitude": "51.5", "longitude": "-0.12"})
    assert cleaned["latitude"] == 51.5
    assert cleaned["longitude"] == -0.12

@pytest.mark.parametrize("latitude,longitude", [
    ("91", "0"),
    ("0", "-180.5"),
    ("north", "0"),
    ("10", None),
])
def test_bad_coordinates_are_rejected(latitude, longitude):
    with pytest.raises(FoodValidationError):
        clean_listing_fields({**VALID, "latitude": latitude, "longitude": longitude})

def test_patch_returns_only_patched_fields():
    current = clean_listing_fields(VALID)
    assert clean_listing_patch(current, {"name": " Stew "}) == {"name": "Stew"}

def test_patch_rejects_system_fields():
    current = clean_listing_fields(VALID)
    with pytest.raises(FoodValidationError, match="Cannot update fields: status"):
        clean_listing_patch(current, {"status": "completed"})

@pytest.mark.parametrize("field", [
    "id", "status", "donor_id", "claimer_id", "expires_at", "created_at", "updated_at"
])
def test_patch_rejects_every_field_outside_the_whitelist(field):
    current = clean_listing_fields(VALID)
    with pytest.raises(FoodValidationError, match=f"Cannot update fields: {field}"):
        clean_listing_patch(current, {field: "x"})

def test_patch_is_validated_against_merged_listing():
    current = clean_listing_fields(VALID)
    with pytest.raises(FoodValidationError):
        clean_listing_patch(current, {"address": ""})
    with pytest.raises(FoodValidationError):
        clean_listing_patch(current, {"latitude": "10"})
