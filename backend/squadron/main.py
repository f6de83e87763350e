"""
FastAPI main application entry point.
"""
import logging

from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from squadron.api.v1.router import api_router
from squadron.core.config import settings
from squadron.core.database import async_session_maker, check_database_connection, engine
from squadron.core.exception_handlers import register_exception_handlers
from squadron.services.server_service import server_service

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Deployment orchestrator for containers on local and remote servers",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/openapi.json",
)

# Register domain exception handlers
register_exception_handlers(app)

# When allow_credentials=True, origins must be specific (not ["*"])
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "X-API-Key",
        "Accept",
        "Origin",
        "X-Requested-With",
    ],
    max_age=600,
)


@app.on_event("startup")
async def startup_event():
    """Check the database and provision the local server."""
    if not await check_database_connection():
        logger.error("Database connection failed; skipping local server provisioning")
        return
    logger.info("Database connection successful")

    async with async_session_maker() as db:
        server = await server_service.ensure_local_server(db)
        logger.info(f"Local server: {server.name} ({server.id})")


@app.on_event("shutdown")
async def shutdown_event():
    await engine.dispose()
    logger.info("Application shutdown complete")


@app.get("/api/health", status_code=status.HTTP_200_OK)
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status and component checks
    """
    db_healthy = await check_database_connection()
    overall_status = "healthy" if db_healthy else "unhealthy"

    return JSONResponse(
        status_code=status.HTTP_200_OK if db_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": overall_status,
            "components": {
                "database": "healthy" if db_healthy else "unhealthy",
            },
            "version": settings.APP_VERSION,
        }
    )


@app.get("/api/v1/info", status_code=status.HTTP_200_OK)
async def info():
    """API version and environment."""
    return {
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "api_version": "v1",
    }


app.include_router(api_router, prefix="/api/v1")


@app.get("/", status_code=status.HTTP_200_OK)
async def root():
    return {
        "message": "Squadron API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/api/health",
    }
