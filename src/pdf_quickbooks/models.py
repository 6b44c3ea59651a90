from datetime import date, datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from pdf_quickbooks.domain.timefmt import utcnow

UNKNOWN = "Unknown"


class CsvFormat(str, Enum):
    THREE_COLUMN = "3-column"  # Date, Description, Amount (MM/DD/YYYY)
    FOUR_COLUMN = "4-column"   # Date, Description, Credit, Debit (DD/MM/YYYY)


class BatchStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class Engine(str, Enum):
    OCR = "ocr-engine"
    TEXT = "text-engine"


class ExtractionStatus(str, Enum):
    EXTRACTED = "extracted"
    FAILED = "failed"


def _new_id() -> str:
    return uuid4().hex


class UserProfile(BaseModel):
    id: str
    subscription_status: str = "inactive"
    monthly_usage: int = 0
    usage_reset_date: date | None = None

    @property
    def subscription_active(self) -> bool:
        return self.subscription_status == "active"


class Account(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    name: str


class Batch(BaseModel):
    id: str = Field(default_factory=_new_id)
    account_id: str
    file_count: int
    total_pages: int
    csv_format: CsvFormat
    status: BatchStatus = BatchStatus.PROCESSING
    created_at: datetime = Field(default_factory=utcnow)
    processed_at: datetime | None = None
    edit_count: int = 0
    download_count: int = 0


class ExtractedData(BaseModel):
    date: str = UNKNOWN
    vendor: str = UNKNOWN
    amount: str = "0"
    description: str = UNKNOWN
    transaction_type: TransactionType = TransactionType.EXPENSE
    classification_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    classification_reasoning: str | None = None


class Extraction(BaseModel):
    id: str = Field(default_factory=_new_id)
    batch_id: str
    filename: str
    extracted_data: ExtractedData = Field(default_factory=ExtractedData)
    engine_used: Engine = Engine.OCR
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    status: ExtractionStatus = ExtractionStatus.EXTRACTED
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class TransactionContext(BaseModel):
    vendor: str
    description: str
    amount: str
    account_name: str


class ClassificationResult(BaseModel):
    transaction_type: TransactionType
    confidence: float  # 0.0 to 1.0
    reasoning: str
    source: str  # "llm" or "rules"


class UserContext(BaseModel):
    """Identity and entitlement of the caller, passed explicitly into every operation."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    subscription_active: bool = False
