from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import sys
import io
import os
from contextlib import asynccontextmanager
from datetime import datetime

from app.core.config import settings
from app.core.exceptions import (
    DocumentRejectedError,
    InvalidTransitionError,
    MasterDataError,
    TaskNotFoundError,
)
from app.api.routes import router
from app.models.field_schema import FIELD_COUNT
from app.models.scheme import ErrorResponse
from app.services.document_queue import document_queue


# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

class UTF8StreamHandler(logging.StreamHandler):
    """Custom handler with UTF-8 encoding for Windows compatibility."""
    def __init__(self):
        if sys.platform == 'win32':
            sys.stdout = io.TextIOWrapper(
                sys.stdout.buffer,
                encoding='utf-8',
                errors='replace',
                line_buffering=True
            )
        super().__init__(sys.stdout)

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        UTF8StreamHandler(),
        logging.FileHandler(settings.LOG_FILE, encoding='utf-8')
    ]
)

logger = logging.getLogger(__name__)


# ============================================================================
# STARTUP/SHUTDOWN LIFECYCLE
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifecycle manager.
    Handles startup and shutdown tasks.
    """
    logger.info("=" * 80)
    logger.info(f"  {settings.APP_NAME.upper()} v{settings.APP_VERSION}")
    logger.info("=" * 80)
    logger.info(f"  AI Model: {settings.AI_MODEL}")
    logger.info(f"  Fields per document: {FIELD_COUNT}")
    logger.info(f"  Max File Size: {settings.MAX_FILE_SIZE_MB}MB")
    logger.info(f"  Master data: {settings.MASTER_DATA_BASE_URL}")
    if not settings.OPENAI_API_KEY:
        logger.warning("  ⚠️  OPENAI_API_KEY is not set; every extraction will fail")
    logger.info("=" * 80)

    yield

    # Uploaded documents may carry personal and financial data
    discarded = document_queue.clear()
    logger.info(f"  🛑 Shutting down, wiped {discarded} document(s) from memory")


# ============================================================================
# APPLICATION INITIALIZATION
# ============================================================================

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=settings.APP_DESCRIPTION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with timing."""
    start_time = datetime.now()

    logger.info(f"📥 {request.method} {request.url.path}")

    try:
        response = await call_next(request)

        duration = (datetime.now() - start_time).total_seconds()
        logger.info(f"📤 {request.method} {request.url.path} - {response.status_code} - {duration:.2f}s")

        return response
    except Exception as e:
        duration = (datetime.now() - start_time).total_seconds()
        logger.error(f"❌ {request.method} {request.url.path} - Error: {str(e)} - {duration:.2f}s")
        raise


# ============================================================================
# ROUTE INCLUSION
# ============================================================================

app.include_router(router)


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def _error(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(mode="json"),
    )


@app.exception_handler(TaskNotFoundError)
async def task_not_found_handler(request: Request, exc: TaskNotFoundError):
    return _error(404, "Not Found", str(exc))


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidTransitionError):
    return _error(409, "Conflict", str(exc))


@app.exception_handler(DocumentRejectedError)
async def document_rejected_handler(request: Request, exc: DocumentRejectedError):
    logger.warning(f"⚠️  Upload rejected: {exc}")
    return _error(400, "Document Rejected", str(exc))


@app.exception_handler(MasterDataError)
async def master_data_handler(request: Request, exc: MasterDataError):
    return _error(502, "Master Data Unavailable", str(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler."""
    logger.error(f"Unhandled exception on {request.url.path}: {str(exc)}", exc_info=True)

    detail = str(exc) if settings.DEBUG else "An error occurred"
    return _error(500, "Internal server error", detail)


# ============================================================================
# ROOT ENDPOINTS
# ============================================================================

@app.get("/")
async def read_root():
    """Root endpoint - API welcome and overview."""
    return {
        "message": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "operational",
        "documentation": "/docs",
        "timestamp": datetime.now().isoformat(),
        "workflow": {
            "step_1": "Pick a category and insurer → PUT /api/batch/selection",
            "step_2": "Upload documents → POST /api/batch/files",
            "step_3": "Extract and validate → POST /api/batch/process",
            "step_4": "Review findings → GET /api/batch",
            "step_5": "Download CSV → GET /api/batch/export?wipe=true",
        },
        "limitations": {
            "max_file_size_mb": settings.MAX_FILE_SIZE_MB,
            "formats": settings.ALLOWED_MIME_TYPES,
            "fields_per_document": FIELD_COUNT,
            "retention": "in memory until wiped",
        },
    }


@app.get("/health")
async def health_check_root():
    """Root health check."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "timestamp": datetime.now().isoformat(),
        "api_documentation": "/docs"
    }


# ============================================================================
# DEVELOPMENT SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))

    logger.info(f"🚀 Starting development server on port {port}...")
    logger.info(f"📚 API Docs: http://localhost:{port}/docs")

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=True,
        log_level="info",
        access_log=True,
        reload_dirs=["app"],
        reload_excludes=["*.log"]
    )
