"""
Main API router aggregator
"""
from fastapi import APIRouter

from trial_scheduler.api.v1.endpoints import scheduler

api_router = APIRouter()

api_router.include_router(scheduler.router)
