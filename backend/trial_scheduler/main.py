"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from trial_scheduler.core.config import settings
from trial_scheduler.api.v1.api import api_router
from trial_scheduler.core.logger import logger
from trial_scheduler.services.background_jobs import shutdown_scheduler, start_scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s started", settings.APP_NAME)
    start_scheduler()
    yield
    shutdown_scheduler()
    logger.info("%s shutdown", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"message": f"{settings.APP_NAME} is running", "version": "1.0.0"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}
