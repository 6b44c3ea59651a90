from typing import Annotated

from fastapi import APIRouter, Depends

from pdf_quickbooks.api.dependencies import get_batch_manager, get_current_user
from pdf_quickbooks.api.schemas import UpdateFieldRequest, UpdateFieldResponse
from pdf_quickbooks.models import UserContext
from pdf_quickbooks.services.batches import BatchManager

router = APIRouter(prefix="/api/extractions")


@router.put("/{extraction_id}", response_model=UpdateFieldResponse)
async def update_extraction(
    extraction_id: str,
    req: UpdateFieldRequest,
    user: Annotated[UserContext, Depends(get_current_user)],
    manager: Annotated[BatchManager, Depends(get_batch_manager)],
) -> UpdateFieldResponse:
    extraction = manager.update_extraction_field(user, extraction_id, req.field, req.value)
    value = getattr(extraction.extracted_data, req.field)
    return UpdateFieldResponse(extraction=extraction, field=req.field, value=value)
