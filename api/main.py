"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, stats, processes, flows, cleanup
from core.config import settings
from core.logging import setup_logging
import logging
from api.middleware import RequestContextMiddleware
from tracking.scheduler import RetentionScheduler

setup_logging()

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Flow Tracker API",
    description="Dashboard over tracked job and service executions",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler
scheduler = RetentionScheduler()


# Include routers
app.include_router(health.router)
app.include_router(stats.router)
app.include_router(processes.router)
app.include_router(flows.router)
app.include_router(cleanup.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Flow Tracker API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.SCHEDULER_ENABLED:
        scheduler.start()


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Flow Tracker API")
    if settings.SCHEDULER_ENABLED:
        scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Flow Tracker API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "stats": "/stats",
            "processes": "/processes",
            "flows": "/flows/{flow_id}",
            "cleanup": "/cleanup"
        }
    }


def run_server():
    import uvicorn

    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    run_server()
