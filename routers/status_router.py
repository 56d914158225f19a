from fastapi import APIRouter

from config.settings import settings

status_router = APIRouter(tags=["Status"])


@status_router.get("/")
async def service_status():
    """Health check with the service version and available endpoints"""
    return {
        "status": "Audio Mixing API is running",
        "version": settings.service_version,
        "endpoints": {
            "mix": "POST /mix - Mix audio stems into a single track",
        },
    }
