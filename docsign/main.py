# docsign/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docsign.core.config import settings
from docsign.core.db import create_tables
from docsign.utils.logger import setup_app_logging, get_logger

# Models must be imported so their tables are registered on the metadata
from docsign.documents import models as document_models  # noqa: F401
from docsign.fields import models as field_models  # noqa: F401
from docsign.audit_trail import models as audit_trail_models  # noqa: F401
from docsign.notifications import models as notification_models  # noqa: F401

# Local application imports - Routes
from docsign.signing.router import router as signing_routes
from docsign.fields.router import router as field_routes
from docsign.audit_trail.router import router as audit_trail_routes


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create missing tables outside production
    """
    if settings.environment.lower() != "production":
        await create_tables()
    yield


# Create the FastAPI app
docsign_app = FastAPI(
    title=f"Document Signing - {settings.environment}",
    description="Recipient signing workflow API",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure logging
setup_app_logging(docsign_app, settings)
logger = get_logger(__name__)

# Add CORS middleware
docsign_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_cors_urls.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
docsign_app.include_router(signing_routes)
docsign_app.include_router(field_routes)
docsign_app.include_router(audit_trail_routes)


# Root API to check if the server is up
@docsign_app.get("/", tags=["Base"])
async def health_check():
    """
    Root API to check if the server is up
    """
    logger.info("Calling root API for testing")
    return {"status": "ok"}
