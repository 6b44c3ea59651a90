from typing import Annotated

from fastapi import APIRouter, Depends, File, Response, UploadFile

from pdf_quickbooks.api.dependencies import get_batch_manager, get_current_user
from pdf_quickbooks.api.schemas import (
    BatchExtractionsResponse,
    BatchSummary,
    CompleteBatchResponse,
    CreateBatchRequest,
    CreateBatchResponse,
    ProcessFilesResponse,
)
from pdf_quickbooks.models import ExtractionStatus, UserContext
from pdf_quickbooks.services.batches import BatchManager, UploadedFile

router = APIRouter(prefix="/api/batches")


async def read_upload(upload: UploadFile) -> UploadedFile:
    content = await upload.read()
    return UploadedFile(
        filename=upload.filename or "receipt.pdf",
        content_type=upload.content_type,
        content=content,
    )


@router.post("", response_model=CreateBatchResponse)
async def create_batch(
    req: CreateBatchRequest,
    user: Annotated[UserContext, Depends(get_current_user)],
    manager: Annotated[BatchManager, Depends(get_batch_manager)],
) -> CreateBatchResponse:
    batch = manager.create_batch(
        user,
        account_id=req.account_id,
        file_count=req.file_count,
        total_pages=req.total_pages,
        csv_format=req.csv_format,
    )
    return CreateBatchResponse(batch_id=batch.id)


@router.post("/{batch_id}/files", response_model=ProcessFilesResponse)
async def process_files(
    batch_id: str,
    files: Annotated[list[UploadFile], File()],
    user: Annotated[UserContext, Depends(get_current_user)],
    manager: Annotated[BatchManager, Depends(get_batch_manager)],
) -> ProcessFilesResponse:
    uploads = [await read_upload(upload) for upload in files]
    extractions = await manager.process_files(user, batch_id, uploads)
    failed = sum(1 for extraction in extractions if extraction.status == ExtractionStatus.FAILED)
    return ProcessFilesResponse(batch_id=batch_id, extractions=extractions, failed_count=failed)


@router.post("/{batch_id}/complete", response_model=CompleteBatchResponse)
async def complete_batch(
    batch_id: str,
    user: Annotated[UserContext, Depends(get_current_user)],
    manager: Annotated[BatchManager, Depends(get_batch_manager)],
) -> CompleteBatchResponse:
    batch, count = manager.complete_batch(user, batch_id)
    return CompleteBatchResponse(extractions_count=count, pages_processed=batch.total_pages)


@router.get("/{batch_id}/extractions", response_model=BatchExtractionsResponse)
async def list_extractions(
    batch_id: str,
    user: Annotated[UserContext, Depends(get_current_user)],
    manager: Annotated[BatchManager, Depends(get_batch_manager)],
) -> BatchExtractionsResponse:
    batch, account, extractions = manager.list_extractions(user, batch_id)
    summary = BatchSummary(
        id=batch.id,
        status=batch.status,
        csv_format=batch.csv_format,
        account_name=account.name,
    )
    return BatchExtractionsResponse(batch=summary, extractions=extractions)


@router.get("/{batch_id}/export-csv")
async def export_csv(
    batch_id: str,
    user: Annotated[UserContext, Depends(get_current_user)],
    manager: Annotated[BatchManager, Depends(get_batch_manager)],
) -> Response:
    export = manager.export_csv(user, batch_id)
    return Response(
        content=export.content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{export.filename}"',
            "Cache-Control": "no-cache",
        },
    )
