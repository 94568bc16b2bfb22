import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from classmate.core.config import settings
from classmate.core.logging import setup_logging
from classmate.core.exceptions import AppError
from classmate.core.middleware import (
    app_error_handler,
    request_logger,
    unhandled_error_handler,
    validation_error_handler,
)
from classmate.api.api_v1.api import api_router
from classmate.database import init_db, ping_db
from classmate.services.notification_scheduler import start_notification_scheduler, stop_notification_scheduler

setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Classmate Central API",
    description="Multi-tenant CRM backend for education centers",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware - must be added before any routes
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Request-ID"],
)
app.middleware("http")(request_logger)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)
app.add_exception_handler(Exception, unhandled_error_handler)

# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
async def startup_event():
    """Create database tables on startup and start notification scheduler"""
    try:
        init_db()
        logger.info("Database initialization completed")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        # Don't exit, let the app start anyway

    if settings.NOTIFICATION_SCHEDULER_ENABLED:
        await start_notification_scheduler()
    else:
        logger.info("NOTIFICATION_SCHEDULER_ENABLED is false; scheduler will not start")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop notification scheduler on shutdown"""
    await stop_notification_scheduler()


@app.get("/")
async def root():
    return {
        "message": "Classmate Central API",
        "version": "1.0.0",
        "docs": "/docs",
        "api": "/api/v1",
        "health": "/health",
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/ready")
async def readiness_check():
    try:
        ping_db()
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "unreachable"})
    return {"status": "ready", "database": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development"
    )
