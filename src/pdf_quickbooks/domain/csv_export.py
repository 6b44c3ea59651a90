"""QuickBooks bank-upload CSV rendering.

Two layouts are supported and neither carries a header row:

* ``3-column``: ``Date (MM/DD/YYYY), Description, Amount`` where income is
  positive and expenses are negative.
* ``4-column``: ``Date (DD/MM/YYYY), Description, Credit, Debit`` where the
  magnitude goes into credit for income and debit for expenses.
"""

from collections.abc import Iterable
from datetime import datetime

from pdf_quickbooks.domain.timefmt import format_receipt_date, utcnow
from pdf_quickbooks.domain.validation import format_amount, parse_amount
from pdf_quickbooks.logger import get_logger
from pdf_quickbooks.models import UNKNOWN, CsvFormat, Extraction, TransactionType

logger = get_logger(__name__)

DEFAULT_DESCRIPTION = "Receipt"


def _is_known(value: str | None) -> bool:
    return bool(value) and value != UNKNOWN


def quote_field(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def compose_description(vendor: str | None, description: str | None, filename: str | None) -> str:
    if _is_known(vendor):
        if _is_known(description):
            return f"{vendor} - {description}"
        return str(vendor)
    if _is_known(description):
        return str(description)
    return filename or DEFAULT_DESCRIPTION


def resolve_date(raw_date: str | None, csv_format: CsvFormat, processed_at: datetime) -> str:
    if _is_known(raw_date):
        return str(raw_date)
    return format_receipt_date(processed_at, day_first=csv_format == CsvFormat.FOUR_COLUMN)


def build_row(
    extraction: Extraction,
    csv_format: CsvFormat,
    processed_at: datetime,
) -> list[str] | None:
    """Return the row's cells, or None when the extraction must not be exported."""
    data = extraction.extracted_data

    if not data.amount or data.amount in ("0", UNKNOWN):
        logger.warning("[EXPORT] Skipping extraction %s - missing or zero amount", extraction.id)
        return None

    amount = parse_amount(data.amount)
    if amount is None:
        logger.warning(
            "[EXPORT] Skipping extraction %s - invalid amount: %s",
            extraction.id,
            data.amount,
        )
        return None
    if amount == 0:
        logger.warning("[EXPORT] Skipping extraction %s - missing or zero amount", extraction.id)
        return None

    magnitude = abs(amount)
    is_income = data.transaction_type == TransactionType.INCOME
    cells = [
        resolve_date(data.date, csv_format, processed_at),
        compose_description(data.vendor, data.description, extraction.filename),
    ]

    if csv_format == CsvFormat.THREE_COLUMN:
        cells.append(format_amount(magnitude if is_income else -magnitude))
    else:
        cells.append(format_amount(magnitude) if is_income else "")
        cells.append("" if is_income else format_amount(magnitude))
    return cells


def render_rows(
    extractions: Iterable[Extraction],
    csv_format: CsvFormat,
    processed_at: datetime | None,
) -> list[str]:
    fallback_date = processed_at or utcnow()
    rows: list[str] = []
    for extraction in extractions:
        cells = build_row(extraction, csv_format, fallback_date)
        if cells is None:
            continue
        rows.append(",".join(quote_field(cell) for cell in cells))
    return rows


def render_csv(
    extractions: Iterable[Extraction],
    csv_format: CsvFormat,
    processed_at: datetime | None,
) -> str:
    """Render the CSV body; an empty string is a valid result when every row was skipped."""
    return "\n".join(render_rows(extractions, csv_format, processed_at))
