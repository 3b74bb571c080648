from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from textil.database.database import sync_engine, Base

# Import middleware and error handlers
from textil.common.middleware import SecurityHeadersMiddleware, RequestLoggingMiddleware
from textil.common.exceptions import register_exception_handlers

# Import routers
from textil.modules.clients.router import router as clients_router
from textil.modules.products.router import router as products_router
from textil.modules.entries.router import router as entries_router
from textil.modules.deliveries.router import router as deliveries_router
from textil.modules.documents.router import router as documents_router
from textil.modules.commands.router import router as commands_router

# Import models for table creation
import textil.modules.clients.models
import textil.modules.products.models
import textil.modules.entries.models
import textil.modules.deliveries.models
import textil.modules.documents.models

from textil.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Textil API",
    description="Multi-tenant textile order reconciliation API: entries, deliveries and invoices",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include routers
app.include_router(clients_router)
app.include_router(products_router)
app.include_router(entries_router)
app.include_router(deliveries_router)
app.include_router(documents_router)
app.include_router(commands_router)

# Create database tables (only for development - use migrations in production)
if settings.ENVIRONMENT == "development":
    Base.metadata.create_all(bind=sync_engine)


@app.get("/")
async def read_root():
    return {
        "message": "Textil API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("Textil API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Textil API shutting down...")
