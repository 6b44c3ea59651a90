import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from time import perf_counter

from pdf_quickbooks.core import settings
from pdf_quickbooks.domain.csv_export import render_rows
from pdf_quickbooks.domain.filenames import build_export_filename
from pdf_quickbooks.domain.timefmt import format_duration, utcnow
from pdf_quickbooks.domain.validation import validate_field
from pdf_quickbooks.errors import (
    AuthorizationError,
    BatchStateError,
    ExtractionError,
    InputValidationError,
    NotFoundError,
    SubscriptionRequiredError,
)
from pdf_quickbooks.logger import get_logger
from pdf_quickbooks.manager import ClassifierService
from pdf_quickbooks.models import (
    UNKNOWN,
    Account,
    Batch,
    BatchStatus,
    CsvFormat,
    ExtractedData,
    Extraction,
    ExtractionStatus,
    TransactionContext,
    UserContext,
)
from pdf_quickbooks.services.extraction import ReceiptExtractor
from pdf_quickbooks.services.rate_limit import TokenBucket
from pdf_quickbooks.storage.base import Store

logger = get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str | None
    content: bytes


@dataclass(frozen=True)
class CsvExport:
    filename: str
    content: str
    row_count: int


def parse_csv_format(value: str | CsvFormat) -> CsvFormat:
    try:
        return CsvFormat(value)
    except ValueError as exc:
        raise InputValidationError("Invalid CSV format. Must be 3-column or 4-column") from exc


class BatchManager:
    """Batch admission, per-file ingestion, completion, review edits and export."""

    def __init__(
        self,
        store: Store,
        extractor: ReceiptExtractor,
        classifier: ClassifierService,
        limiter: TokenBucket,
        *,
        monthly_page_limit: int = settings.DEFAULT_MONTHLY_PAGE_LIMIT,
        max_files_per_batch: int = settings.DEFAULT_MAX_FILES_PER_BATCH,
        max_upload_bytes: int = settings.DEFAULT_MAX_UPLOAD_BYTES,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.classifier = classifier
        self.limiter = limiter
        self.monthly_page_limit = monthly_page_limit
        self.max_files_per_batch = max_files_per_batch
        self.max_upload_bytes = max_upload_bytes

    # Ownership and state guards

    def _require_subscription(self, user: UserContext, action: str) -> None:
        if not user.subscription_active:
            raise SubscriptionRequiredError(f"Active subscription required for {action}")

    def _owned_account(self, user: UserContext, account_id: str) -> Account:
        account = self.store.get_account(account_id)
        if account is None or account.user_id != user.user_id:
            raise AuthorizationError(
                "The selected account could not be found. Please refresh the page and try again."
            )
        return account

    def get_owned_batch(self, user: UserContext, batch_id: str) -> tuple[Batch, Account]:
        batch = self.store.get_batch(batch_id)
        if batch is None:
            raise NotFoundError("Batch not found")
        account = self.store.get_account(batch.account_id)
        if account is None or account.user_id != user.user_id:
            raise AuthorizationError("Batch not found or access denied")
        return batch, account

    @staticmethod
    def _require_status(batch: Batch, status: BatchStatus, message: str) -> None:
        if batch.status != status:
            raise BatchStateError(message, status=batch.status.value)

    # Admission

    def create_batch(
        self,
        user: UserContext,
        *,
        account_id: str,
        file_count: int,
        total_pages: int,
        csv_format: str | CsvFormat,
    ) -> Batch:
        if not 1 <= file_count <= self.max_files_per_batch:
            raise InputValidationError(
                f"A batch must contain between 1 and {self.max_files_per_batch} files"
            )
        if total_pages < 1:
            raise InputValidationError("total_pages must be at least 1")
        csv_format = parse_csv_format(csv_format)

        account = self._owned_account(user, account_id)
        self._require_subscription(user, "batch processing")

        batch = Batch(
            account_id=account.id,
            file_count=file_count,
            total_pages=total_pages,
            csv_format=csv_format,
        )
        batch = self.store.create_batch_within_limit(batch, user.user_id, self.monthly_page_limit)
        logger.info(
            "[BATCH] Created batch %s for account %s: %s files, %s pages, %s.",
            batch.id,
            account.id,
            file_count,
            total_pages,
            csv_format.value,
        )
        return batch

    # Ingestion

    def validate_upload(self, upload: UploadedFile) -> None:
        if upload.content_type != PDF_CONTENT_TYPE:
            raise InputValidationError("File must be a PDF", filename=upload.filename)
        if not upload.content:
            raise InputValidationError("File is empty", filename=upload.filename)
        if len(upload.content) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes // (1024 * 1024)
            raise InputValidationError(
                f"File size must be less than {limit_mb}MB",
                filename=upload.filename,
            )

    async def _ingest(self, batch: Batch, account: Account, upload: UploadedFile) -> Extraction:
        """Extract, classify and store one file. Upstream failures mark the extraction failed."""
        await self.limiter.acquire()

        try:
            fields = await self.extractor.extract(upload.filename, upload.content, batch.csv_format)
        except ExtractionError as exc:
            logger.warning("[BATCH] Extraction failed for %s in batch %s: %s", upload.filename, batch.id, exc)
            extraction = Extraction(
                batch_id=batch.id,
                filename=upload.filename,
                status=ExtractionStatus.FAILED,
                error=exc.message,
                extracted_data=ExtractedData(
                    classification_reasoning="Extraction failed - defaulting to expense",
                ),
            )
            return self.store.add_extraction(extraction)

        context = TransactionContext(
            vendor=fields.vendor,
            description=fields.description,
            amount=fields.amount,
            account_name=account.name or "Unknown Account",
        )
        classification = await asyncio.to_thread(self.classifier.classify, context)

        extraction = Extraction(
            batch_id=batch.id,
            filename=upload.filename,
            engine_used=fields.engine,
            confidence_score=fields.confidence,
            extracted_data=ExtractedData(
                date=fields.date,
                vendor=fields.vendor,
                amount=fields.amount,
                description=fields.description,
                transaction_type=classification.transaction_type,
                classification_confidence=classification.confidence,
                classification_reasoning=classification.reasoning,
            ),
        )
        logger.info(
            "[BATCH] %s -> %s %s (%s, confidence %.2f).",
            upload.filename,
            classification.transaction_type.value,
            fields.amount,
            classification.source,
            classification.confidence,
        )
        return self.store.add_extraction(extraction)

    async def process_files(
        self,
        user: UserContext,
        batch_id: str,
        uploads: Sequence[UploadedFile],
    ) -> list[Extraction]:
        """Ingest *uploads* one at a time, in submission order."""
        batch, account = self.get_owned_batch(user, batch_id)
        self._require_status(batch, BatchStatus.PROCESSING, "Batch is not in processing status")
        self._require_subscription(user, "batch processing")

        if not uploads:
            raise InputValidationError("No files provided")
        for upload in uploads:
            self.validate_upload(upload)

        already = len(self.store.list_extractions(batch.id))
        if already + len(uploads) > batch.file_count:
            raise InputValidationError(
                f"Batch expects {batch.file_count} files; {already} already processed"
            )

        started = perf_counter()
        results: list[Extraction] = []
        for upload in uploads:
            results.append(await self._ingest(batch, account, upload))

        failed = sum(1 for extraction in results if extraction.status == ExtractionStatus.FAILED)
        logger.info(
            "[BATCH] Processed %s file(s) for batch %s in %s (%s failed).",
            len(results),
            batch.id,
            format_duration(perf_counter() - started),
            failed,
        )
        return results

    async def extract_preview(self, upload: UploadedFile, csv_format: str | CsvFormat) -> ExtractedData:
        """Extract a single PDF without storing anything or touching usage."""
        self.validate_upload(upload)
        csv_format = parse_csv_format(csv_format)
        await self.limiter.acquire()
        fields = await self.extractor.extract(upload.filename, upload.content, csv_format)
        return ExtractedData(
            date=fields.date,
            vendor=fields.vendor,
            amount=fields.amount,
            description=fields.description,
        )

    # Lifecycle transitions

    def complete_batch(self, user: UserContext, batch_id: str) -> tuple[Batch, int]:
        batch, _ = self.get_owned_batch(user, batch_id)
        self._require_status(batch, BatchStatus.PROCESSING, "Batch is not in processing status")

        extraction_count = len(self.store.list_extractions(batch.id))
        if extraction_count < batch.file_count:
            raise BatchStateError(
                f"Only {extraction_count} of {batch.file_count} files have been processed",
                status=batch.status.value,
            )

        # Status flip and usage increment happen together under the store lock,
        # so a retried completion is rejected rather than counted twice.
        batch = self.store.complete_batch(batch.id, utcnow())
        logger.info(
            "[BATCH] Batch %s completed: %s extractions, %s pages counted.",
            batch.id,
            extraction_count,
            batch.total_pages,
        )
        return batch, extraction_count

    def mark_failed(self, batch_id: str) -> Batch:
        """Operator action; nothing in the pipeline fails a batch on its own."""
        batch = self.store.set_batch_status(
            batch_id,
            BatchStatus.FAILED,
            expected=BatchStatus.PROCESSING,
        )
        logger.warning("[BATCH] Batch %s marked as failed.", batch_id)
        return batch

    # Review and export

    def list_extractions(self, user: UserContext, batch_id: str) -> tuple[Batch, Account, list[Extraction]]:
        batch, account = self.get_owned_batch(user, batch_id)
        self._require_status(batch, BatchStatus.COMPLETED, "Batch is not completed yet")
        return batch, account, self.store.list_extractions(batch.id)

    def update_extraction_field(
        self,
        user: UserContext,
        extraction_id: str,
        field: str,
        value: str,
    ) -> Extraction:
        extraction = self.store.get_extraction(extraction_id)
        if extraction is None:
            raise NotFoundError("Extraction not found")
        try:
            batch, _ = self.get_owned_batch(user, extraction.batch_id)
        except NotFoundError as exc:
            raise NotFoundError("Batch not found for this extraction") from exc
        self._require_status(batch, BatchStatus.COMPLETED, "Cannot edit extractions from incomplete batches")

        cleaned = validate_field(field, value, batch.csv_format)
        old_value = getattr(extraction.extracted_data, field)
        updated = self.store.update_extraction_field(extraction.id, field, cleaned)
        self.store.increment_batch_counter(batch.id, "edit_count")
        logger.info(
            "[EDIT] Extraction %s: %s %r -> %r",
            extraction.id,
            field,
            old_value,
            cleaned,
        )
        return updated

    def export_csv(self, user: UserContext, batch_id: str) -> CsvExport:
        batch, account = self.get_owned_batch(user, batch_id)
        self._require_subscription(user, "CSV export")
        self._require_status(batch, BatchStatus.COMPLETED, "Batch is not completed yet")

        extractions = self.store.list_extractions(batch.id)
        if not extractions:
            raise NotFoundError("No extractions found for this batch")

        processed_at = batch.processed_at or utcnow()
        rows = render_rows(extractions, batch.csv_format, processed_at)
        content = "\n".join(rows)
        row_count = len(rows)
        filename = build_export_filename(account.name or UNKNOWN, processed_at, batch.csv_format)
        self.store.increment_batch_counter(batch.id, "download_count")

        logger.info(
            "[EXPORT] Batch %s: %s of %s extractions exported as %s.",
            batch.id,
            row_count,
            len(extractions),
            filename,
        )
        return CsvExport(filename=filename, content=content, row_count=row_count)
