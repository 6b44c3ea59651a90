import os
from dataclasses import dataclass
from typing import Any

from pdf_quickbooks.core import settings
from pdf_quickbooks.domain.ai_json import extract_json_object
from pdf_quickbooks.errors import ExtractionError
from pdf_quickbooks.integration.openrouter import OpenRouterClient
from pdf_quickbooks.logger import get_logger
from pdf_quickbooks.models import UNKNOWN, CsvFormat, Engine

logger = get_logger(__name__)

# Fixed until the engine reports a real quality signal.
EXTRACTION_CONFIDENCE = 0.85

# Engine id -> OpenRouter file-parser engine name.
PDF_ENGINES = {
    Engine.OCR: "mistral-ocr",
    Engine.TEXT: "pdf-text",
}


@dataclass(frozen=True)
class ReceiptFields:
    date: str
    vendor: str
    amount: str
    description: str
    engine: Engine
    confidence: float


def select_engine(filename: str, content: bytes) -> Engine:
    # TODO: route digital PDFs with a selectable text layer to Engine.TEXT.
    return Engine.OCR


def build_extraction_prompt(csv_format: CsvFormat) -> str:
    if csv_format == CsvFormat.FOUR_COLUMN:
        date_format = "DD/MM/YYYY format"
        format_instructions = "Format: Date (DD/MM/YYYY), Description, Credit (blank), Debit (positive amounts)"
    else:
        date_format = "MM/DD/YYYY format"
        format_instructions = "Format: Date (MM/DD/YYYY), Description (vendor + memo), Amount (negative for expenses)"

    return f"""Extract receipt data from this PDF and return ONLY a JSON object with the following fields:
- date: {date_format}
- vendor: Company/store name
- amount: Numeric value only (no currency symbols)
- description: Brief description of purchase

{format_instructions}

Return ONLY valid JSON, no other text. If any field cannot be determined, use "{UNKNOWN}" as the value."""


def _as_text(value: Any, default: str) -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    text = str(value).strip()
    return text or default


def clean_extracted_fields(payload: dict[str, Any]) -> dict[str, str]:
    return {
        "date": _as_text(payload.get("date"), UNKNOWN),
        "vendor": _as_text(payload.get("vendor"), UNKNOWN),
        "amount": _as_text(payload.get("amount"), "0"),
        "description": _as_text(payload.get("description"), UNKNOWN),
    }


class ReceiptExtractor:
    def __init__(self, client: OpenRouterClient, model: str | None = None):
        self.client = client
        self.model = model or os.getenv("EXTRACTION_MODEL", settings.DEFAULT_EXTRACTION_MODEL)

    async def extract(self, filename: str, content: bytes, csv_format: CsvFormat) -> ReceiptFields:
        engine = select_engine(filename, content)
        logger.info("[EXTRACT] %s via %s (%s)", filename, engine.value, self.model)

        reply = await self.client.complete_with_pdf(
            model=self.model,
            prompt=build_extraction_prompt(csv_format),
            filename=filename,
            content=content,
            pdf_engine=PDF_ENGINES[engine],
        )

        payload = extract_json_object(reply)
        if payload is None:
            logger.error("[EXTRACT] No JSON object in reply for %s: %s", filename, reply[:200])
            raise ExtractionError("Failed to parse extracted data")

        fields = clean_extracted_fields(payload)
        return ReceiptFields(
            engine=engine,
            confidence=EXTRACTION_CONFIDENCE,
            **fields,
        )
