import pytest

from pdf_quickbooks.domain.validation import (
    parse_amount,
    validate_amount,
    validate_date,
    validate_description,
    validate_field,
    validate_vendor,
)
from pdf_quickbooks.errors import FieldValidationError
from pdf_quickbooks.models import CsvFormat


def test_date_month_first_for_three_column() -> None:
    assert validate_date("12/15/2024", CsvFormat.THREE_COLUMN) == ("12/15/2024", None)
    _, error = validate_date("15/12/2024", CsvFormat.THREE_COLUMN)
    assert error == "Invalid month"


def test_date_day_first_for_four_column() -> None:
    assert validate_date("15/12/2024", CsvFormat.FOUR_COLUMN) == ("15/12/2024", None)
    _, error = validate_date("12/15/2024", CsvFormat.FOUR_COLUMN)
    assert error == "Invalid month"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("", "Date is required"),
        ("   ", "Date is required"),
        ("2024-12-15", "Date must be in MM/DD/YYYY format"),
        ("1/5/2024", "Date must be in MM/DD/YYYY format"),
        ("12/15/2024\n", "Date must be in MM/DD/YYYY format"),
        (" 12/15/2024", "Date must be in MM/DD/YYYY format"),
        ("\u0661\u0662/\u0661\u0665/\u0662\u0660\u0662\u0664", "Date must be in MM/DD/YYYY format"),
        ("12/00/2024", "Invalid day"),
        ("12/32/2024", "Invalid day"),
        ("12/15/1899", "Invalid year"),
        ("12/15/2101", "Invalid year"),
        ("02/30/2024", "Invalid date"),
        ("02/29/2023", "Invalid date"),
    ],
)
def test_date_rejections(value: str, expected: str) -> None:
    returned, error = validate_date(value, CsvFormat.THREE_COLUMN)
    assert returned == value
    assert error == expected


def test_leap_day_is_accepted() -> None:
    assert validate_date("02/29/2024", CsvFormat.THREE_COLUMN)[1] is None
    assert validate_date("29/02/2024", CsvFormat.FOUR_COLUMN)[1] is None


def test_four_column_format_message() -> None:
    _, error = validate_date("2024/12/15", CsvFormat.FOUR_COLUMN)
    assert error == "Date must be in DD/MM/YYYY format"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,234.50", "1234.5"),
        ("€ 12.00", "12"),
        ("0.00", "0"),
        ("  42 ", "42"),
        ("999999999999", "999999999999"),
    ],
)
def test_amount_is_normalised(raw: str, expected: str) -> None:
    assert validate_amount(raw) == (expected, None)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", "Amount is required"),
        ("abc", "Amount must be a valid number"),
        ("NaN", "Amount must be a valid number"),
        ("-5", "Amount cannot be negative"),
        ("1000000000000", "Amount too large (max 999 billion)"),
    ],
)
def test_amount_rejections(raw: str, expected: str) -> None:
    assert validate_amount(raw)[1] == expected


def test_parse_amount_handles_symbols() -> None:
    assert str(parse_amount("£-3.20")) == "-3.20"
    assert parse_amount(None) is None
    assert parse_amount("$") is None


def test_vendor_and_description_lengths() -> None:
    assert validate_vendor("a" * 100)[1] is None
    assert validate_vendor("a" * 101)[1] == "Vendor name too long (max 100 characters)"
    assert validate_vendor(" ")[1] == "Vendor is required"
    assert validate_description("d" * 200)[1] is None
    assert validate_description("d" * 201)[1] == "Description too long (max 200 characters)"
    assert validate_description("")[1] == "Description is required"


def test_validate_field_returns_cleaned_value() -> None:
    assert validate_field("amount", "$25.990", CsvFormat.THREE_COLUMN) == "25.99"
    assert validate_field("vendor", "Acme Corp", CsvFormat.THREE_COLUMN) == "Acme Corp"


def test_validate_field_error_carries_field_and_value() -> None:
    with pytest.raises(FieldValidationError) as exc_info:
        validate_field("date", "13/45/2024", CsvFormat.THREE_COLUMN)
    payload = exc_info.value.to_payload()
    assert payload["field"] == "date"
    assert payload["value"] == "13/45/2024"
    assert payload["detail"] == "Invalid month"
    assert exc_info.value.status_code == 400


def test_validate_field_rejects_unknown_field() -> None:
    with pytest.raises(FieldValidationError) as exc_info:
        validate_field("transaction_type", "income", CsvFormat.THREE_COLUMN)
    assert "Invalid field" in exc_info.value.message


def test_validate_field_rejects_non_string() -> None:
    with pytest.raises(FieldValidationError):
        validate_field("amount", 12.5, CsvFormat.THREE_COLUMN)  # type: ignore[arg-type]


def test_validate_field_rejects_date_with_trailing_newline() -> None:
    with pytest.raises(FieldValidationError) as exc_info:
        validate_field("date", "12/15/2024\n", CsvFormat.THREE_COLUMN)
    assert exc_info.value.field == "date"
