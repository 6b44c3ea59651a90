from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from pdf_quickbooks.api.dependencies import get_batch_manager
from pdf_quickbooks.api.routes.batches import read_upload
from pdf_quickbooks.api.schemas import PreviewResponse
from pdf_quickbooks.models import CsvFormat
from pdf_quickbooks.services.batches import BatchManager

router = APIRouter()


@router.post("/api/process-pdf", response_model=PreviewResponse)
async def process_pdf(
    file: Annotated[UploadFile, File()],
    manager: Annotated[BatchManager, Depends(get_batch_manager)],
    format: Annotated[str, Form()] = CsvFormat.THREE_COLUMN.value,
) -> PreviewResponse:
    """Single-file trial: nothing is stored and no usage is counted."""
    upload = await read_upload(file)
    data = await manager.extract_preview(upload, format)
    return PreviewResponse(data=data)
