from fastapi import APIRouter

from discount_scheduler.api.discounts import router as discounts_router
from discount_scheduler.api.runs import router as runs_router

api_router = APIRouter()

# API routes at /api/*
api_router.include_router(discounts_router, prefix="/api", tags=["discounts"])
api_router.include_router(runs_router, prefix="/api", tags=["runs"])
