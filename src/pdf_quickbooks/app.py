import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pdf_quickbooks.api.routes import batches, extractions, health, preview
from pdf_quickbooks.core import settings
from pdf_quickbooks.errors import PipelineError
from pdf_quickbooks.integration.openrouter import OpenRouterClient
from pdf_quickbooks.logger import get_logger, setup_logging
from pdf_quickbooks.manager import ClassifierService
from pdf_quickbooks.services.batches import BatchManager
from pdf_quickbooks.services.extraction import ReceiptExtractor
from pdf_quickbooks.services.rate_limit import TokenBucket
from pdf_quickbooks.storage.local import LocalStore

logger = get_logger(__name__)

STORE_FILENAME = "store.json"


async def handle_pipeline_error(request: Request, exc: PipelineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[HTTP] %s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[HTTP] Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app() -> FastAPI:
    setup_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("Initializing services...")
        settings.log_environment()

        if not os.getenv("OPENROUTER_API_KEY"):
            logger.warning(
                "OPENROUTER_API_KEY not set. PDF extraction will fail and classification falls back to rules."
            )

        store = LocalStore(data_path=os.path.join(settings.DATA_DIR, STORE_FILENAME))
        openrouter = OpenRouterClient()
        classifier = ClassifierService()
        manager = BatchManager(
            store=store,
            extractor=ReceiptExtractor(openrouter),
            classifier=classifier,
            limiter=TokenBucket.from_interval(settings.EXTRACTION_INTERVAL_SECONDS),
            monthly_page_limit=settings.MONTHLY_PAGE_LIMIT,
            max_files_per_batch=settings.MAX_FILES_PER_BATCH,
            max_upload_bytes=settings.MAX_UPLOAD_BYTES,
        )

        app.state.store = store
        app.state.openrouter = openrouter
        app.state.classifier = classifier
        app.state.batch_manager = manager

        logger.info("Services initialized.")
        yield
        logger.info("Service shutting down.")
        await openrouter.aclose()

    app = FastAPI(title="PDF to QuickBooks", lifespan=lifespan)

    app.add_exception_handler(PipelineError, handle_pipeline_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(health.router)
    app.include_router(batches.router)
    app.include_router(extractions.router)
    app.include_router(preview.router)

    return app
