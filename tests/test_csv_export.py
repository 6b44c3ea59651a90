from datetime import datetime, timezone

import pytest

from pdf_quickbooks.domain.csv_export import (
    build_row,
    compose_description,
    quote_field,
    render_csv,
    render_rows,
)
from pdf_quickbooks.domain.filenames import build_export_filename, sanitize_account_name
from pdf_quickbooks.models import CsvFormat, ExtractedData, Extraction, TransactionType

PROCESSED_AT = datetime(2024, 12, 20, 15, 30, tzinfo=timezone.utc)


def make_extraction(
    amount: str = "25.99",
    transaction_type: TransactionType = TransactionType.EXPENSE,
    date: str = "12/15/2024",
    vendor: str = "Acme Corp",
    description: str = "Office supplies",
    filename: str = "receipt.pdf",
) -> Extraction:
    return Extraction(
        batch_id="batch-1",
        filename=filename,
        extracted_data=ExtractedData(
            date=date,
            vendor=vendor,
            amount=amount,
            description=description,
            transaction_type=transaction_type,
        ),
    )


def test_three_column_expense_is_negative() -> None:
    rows = render_rows([make_extraction()], CsvFormat.THREE_COLUMN, PROCESSED_AT)
    assert rows == ['"12/15/2024","Acme Corp - Office supplies","-25.99"']


def test_three_column_income_is_positive_magnitude() -> None:
    extraction = make_extraction(amount="-1,200.50", transaction_type=TransactionType.INCOME)
    assert build_row(extraction, CsvFormat.THREE_COLUMN, PROCESSED_AT) == [
        "12/15/2024",
        "Acme Corp - Office supplies",
        "1200.5",
    ]


def test_four_column_credit_and_debit() -> None:
    income = make_extraction(amount="100", transaction_type=TransactionType.INCOME, date="15/12/2024")
    expense = make_extraction(amount="$40.10", date="16/12/2024")
    content = render_csv([income, expense], CsvFormat.FOUR_COLUMN, PROCESSED_AT)
    assert content == (
        '"15/12/2024","Acme Corp - Office supplies","100",""\n'
        '"16/12/2024","Acme Corp - Office supplies","","40.1"'
    )


def test_no_header_row() -> None:
    content = render_csv([make_extraction()], CsvFormat.THREE_COLUMN, PROCESSED_AT)
    assert not content.startswith('"Date"')
    assert len(content.split("\n")) == 1


@pytest.mark.parametrize(
    "csv_format, expected_row",
    [
        (CsvFormat.THREE_COLUMN, '"12/15/2024","Acme Corp - Office supplies","-7"'),
        (CsvFormat.FOUR_COLUMN, '"12/15/2024","Acme Corp - Office supplies","","7"'),
    ],
)
def test_rows_with_missing_or_invalid_amount_are_skipped(csv_format: CsvFormat, expected_row: str) -> None:
    extractions = [
        make_extraction(amount="0"),
        make_extraction(amount="Unknown"),
        make_extraction(amount=""),
        make_extraction(amount="0.00"),
        make_extraction(amount="twelve"),
        make_extraction(amount="7"),
    ]
    rows = render_rows(extractions, csv_format, PROCESSED_AT)
    assert rows == [expected_row]
    assert all("Unknown" not in row for row in rows)


def test_all_rows_skipped_gives_empty_body() -> None:
    assert render_csv([make_extraction(amount="0")], CsvFormat.THREE_COLUMN, PROCESSED_AT) == ""


def test_unknown_date_falls_back_to_processed_at() -> None:
    extraction = make_extraction(date="Unknown")
    assert build_row(extraction, CsvFormat.THREE_COLUMN, PROCESSED_AT)[0] == "12/20/2024"
    assert build_row(extraction, CsvFormat.FOUR_COLUMN, PROCESSED_AT)[0] == "20/12/2024"


def test_description_composition() -> None:
    assert compose_description("Acme", "Unknown", "a.pdf") == "Acme"
    assert compose_description("Unknown", "Lunch", "a.pdf") == "Lunch"
    assert compose_description("Unknown", "Unknown", "a.pdf") == "a.pdf"
    assert compose_description(None, "", None) == "Receipt"


def test_quotes_are_doubled() -> None:
    assert quote_field('Joe "The Plumber"') == '"Joe ""The Plumber"""'
    extraction = make_extraction(vendor='Bob\'s "Best"', description="Tools")
    rows = render_rows([extraction], CsvFormat.THREE_COLUMN, PROCESSED_AT)
    assert rows == ['"12/15/2024","Bob\'s ""Best"" - Tools","-25.99"']


def test_sanitize_account_name() -> None:
    assert sanitize_account_name("Joe's Café & Co.") == "Joe_s_Caf_Co"
    assert sanitize_account_name("__Acme   Inc__") == "Acme_Inc"
    assert sanitize_account_name("!!!") == ""


def test_export_filename() -> None:
    assert (
        build_export_filename("Joe's Café & Co.", PROCESSED_AT, CsvFormat.THREE_COLUMN)
        == "QuickBooks_Joe_s_Caf_Co_2024-12-20_3-column.csv"
    )
    assert (
        build_export_filename("***", PROCESSED_AT, CsvFormat.FOUR_COLUMN)
        == "QuickBooks_Unknown_2024-12-20_4-column.csv"
    )
