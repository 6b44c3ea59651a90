import re
from datetime import datetime

from pdf_quickbooks.domain.timefmt import iso_date
from pdf_quickbooks.models import UNKNOWN, CsvFormat

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")
_UNDERSCORE_RUNS = re.compile(r"_+")


def sanitize_account_name(name: str) -> str:
    sanitized = _UNSAFE_CHARS.sub("_", name)
    sanitized = _UNDERSCORE_RUNS.sub("_", sanitized)
    return sanitized.strip("_")


def build_export_filename(account_name: str, processed_at: datetime, csv_format: CsvFormat) -> str:
    """``QuickBooks_<Account>_<YYYY-MM-DD>_<format>.csv``; the date is always ISO so files sort."""
    segment = sanitize_account_name(account_name) or UNKNOWN
    return (
        f"QuickBooks_{segment}_"
        f"{iso_date(processed_at)}_{CsvFormat(csv_format).value}.csv"
    )
