from pydantic import BaseModel

from pdf_quickbooks.models import BatchStatus, CsvFormat, ExtractedData, Extraction


class CreateBatchRequest(BaseModel):
    account_id: str
    file_count: int
    total_pages: int
    csv_format: str


class CreateBatchResponse(BaseModel):
    success: bool = True
    batch_id: str


class ProcessFilesResponse(BaseModel):
    batch_id: str
    extractions: list[Extraction]
    failed_count: int


class CompleteBatchResponse(BaseModel):
    success: bool = True
    message: str = "Batch processing completed successfully"
    extractions_count: int
    pages_processed: int


class BatchSummary(BaseModel):
    id: str
    status: BatchStatus
    csv_format: CsvFormat
    account_name: str


class BatchExtractionsResponse(BaseModel):
    success: bool = True
    batch: BatchSummary
    extractions: list[Extraction]


class UpdateFieldRequest(BaseModel):
    field: str
    value: str


class UpdateFieldResponse(BaseModel):
    success: bool = True
    extraction: Extraction
    field: str
    value: str


class PreviewResponse(BaseModel):
    success: bool = True
    data: ExtractedData
