from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api.deps import get_email_processor
from app.core.config import settings
from app.core.rate_limit import limiter
from app.schemas.processing import (
    BatchProcessingResult,
    EmailSyncRequest,
    ProcessingResult,
)
from app.services.email_processor import EmailProcessor

router = APIRouter(prefix="/emails", tags=["Emails"])


@router.post("/sync", response_model=BatchProcessingResult)
@limiter.limit(settings.SYNC_RATE_LIMIT)
async def sync_emails(
    request: Request,
    request_body: EmailSyncRequest,
    processor: EmailProcessor = Depends(get_email_processor),
) -> BatchProcessingResult:
    """Store a batch of synced emails and run the rules over each.

    Per-email failures are reported in the result and never fail the
    request.
    """
    return await processor.process_emails(
        request_body.emails,
        access_token=request_body.access_token,
        force_reprocess=request_body.force_reprocess,
    )


@router.post("/reprocess", response_model=BatchProcessingResult)
async def reprocess_emails(
    limit: Optional[int] = Query(default=None, ge=1, le=1000),
    processor: EmailProcessor = Depends(get_email_processor),
) -> BatchProcessingResult:
    return await processor.reprocess_unprocessed(limit)


@router.post("/{communication_id}/process", response_model=ProcessingResult)
async def process_email(
    communication_id: int,
    force_reprocess: bool = Query(default=False),
    processor: EmailProcessor = Depends(get_email_processor),
) -> ProcessingResult:
    return await processor.process_stored_email(communication_id, force_reprocess)
