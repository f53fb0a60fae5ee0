"""Format checks for shipment reference numbers.

These are advisory: carriers issue numbers that do not always follow the
common patterns, so callers warn instead of refusing a request.
"""

import re

# ISO 6346: owner code (3 letters) + category letter + 6 digits + check digit
CONTAINER_PATTERN = re.compile(r"^[A-Z]{4}\d{7}$", re.IGNORECASE)
# Carrier prefix + 8-12 digits
BL_PATTERN = re.compile(r"^[A-Z]{4}\d{8,12}$", re.IGNORECASE)
# Carrier-specific, generally alphanumeric
BOOKING_PATTERN = re.compile(r"^[A-Z0-9]{6,20}$", re.IGNORECASE)


def is_valid_container_number(number: str) -> bool:
    return bool(CONTAINER_PATTERN.match(number.strip()))


def is_valid_bl_number(number: str) -> bool:
    return bool(BL_PATTERN.match(number.strip()))


def is_valid_booking_number(number: str) -> bool:
    return bool(BOOKING_PATTERN.match(number.strip()))
