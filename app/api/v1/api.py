"""V1 API router aggregation."""
from fastapi import APIRouter

from app.api.v1.endpoints import videos

api_router = APIRouter(prefix="/v1")
api_router.include_router(videos.router)
