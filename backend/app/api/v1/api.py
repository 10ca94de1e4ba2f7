from fastapi import APIRouter

from backend.app.api.v1.endpoints import metrics

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(metrics.router, prefix="/metrics", tags=["metrics"])
