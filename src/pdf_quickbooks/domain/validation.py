"""Validation and normalisation of user edits to extracted receipt fields.

Each ``validate_*`` helper returns ``(value, error)``: the normalised value
and ``None`` on success, or the untouched input and a human-readable reason
on rejection. :func:`validate_field` dispatches on the field name and raises
:class:`FieldValidationError` instead, for callers that propagate errors.
"""

import re
import unicodedata
from datetime import date
from decimal import Decimal, InvalidOperation

from pdf_quickbooks.errors import FieldValidationError
from pdf_quickbooks.models import CsvFormat

EDITABLE_FIELDS = ("date", "vendor", "amount", "description")

MAX_AMOUNT = Decimal("999999999999")
MAX_VENDOR_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 200
MIN_YEAR = 1900
MAX_YEAR = 2100

_DATE_PATTERN = re.compile(r"([0-9]{2})/([0-9]{2})/([0-9]{4})")


def date_pattern_label(csv_format: CsvFormat) -> str:
    return "DD/MM/YYYY" if csv_format == CsvFormat.FOUR_COLUMN else "MM/DD/YYYY"


def validate_date(value: str, csv_format: CsvFormat) -> tuple[str, str | None]:
    if not value or not value.strip():
        return value, "Date is required"

    match = _DATE_PATTERN.fullmatch(value)
    if not match:
        return value, f"Date must be in {date_pattern_label(csv_format)} format"

    first, second, year_text = match.groups()
    if csv_format == CsvFormat.FOUR_COLUMN:
        day, month = int(first), int(second)
    else:
        month, day = int(first), int(second)
    year = int(year_text)

    if not 1 <= month <= 12:
        return value, "Invalid month"
    if not 1 <= day <= 31:
        return value, "Invalid day"
    if not MIN_YEAR <= year <= MAX_YEAR:
        return value, "Invalid year"

    # Catches day overflow and 29 February outside leap years.
    try:
        date(year, month, day)
    except ValueError:
        return value, "Invalid date"

    return value, None


def strip_amount_symbols(raw: str) -> str:
    return "".join(
        ch for ch in raw
        if not (ch.isspace() or ch == "," or unicodedata.category(ch) == "Sc")
    )


def parse_amount(raw: str | None) -> Decimal | None:
    """Parse an amount string, ignoring currency symbols, commas and whitespace."""
    if raw is None:
        return None
    cleaned = strip_amount_symbols(str(raw))
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def format_amount(value: Decimal) -> str:
    """Plain decimal notation without trailing zeros, e.g. ``1234.5`` or ``-50``."""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def validate_amount(value: str) -> tuple[str, str | None]:
    if not value or not value.strip():
        return value, "Amount is required"

    amount = parse_amount(value)
    if amount is None:
        return value, "Amount must be a valid number"
    if amount < 0:
        return value, "Amount cannot be negative"
    if amount > MAX_AMOUNT:
        return value, "Amount too large (max 999 billion)"

    return format_amount(amount), None


def validate_vendor(value: str) -> tuple[str, str | None]:
    if not value or not value.strip():
        return value, "Vendor is required"
    if len(value) > MAX_VENDOR_LENGTH:
        return value, f"Vendor name too long (max {MAX_VENDOR_LENGTH} characters)"
    return value, None


def validate_description(value: str) -> tuple[str, str | None]:
    if not value or not value.strip():
        return value, "Description is required"
    if len(value) > MAX_DESCRIPTION_LENGTH:
        return value, f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)"
    return value, None


def validate_field(field: str, value: str, csv_format: CsvFormat) -> str:
    if field not in EDITABLE_FIELDS:
        raise FieldValidationError(
            field,
            f"Invalid field: {field}. Must be one of: {', '.join(EDITABLE_FIELDS)}",
            value,
        )
    if not isinstance(value, str):
        raise FieldValidationError(field, f"{field.capitalize()} must be a string", value)

    if field == "date":
        cleaned, error = validate_date(value, csv_format)
    elif field == "amount":
        cleaned, error = validate_amount(value)
    elif field == "vendor":
        cleaned, error = validate_vendor(value)
    else:
        cleaned, error = validate_description(value)

    if error:
        raise FieldValidationError(field, error, value)
    return cleaned
