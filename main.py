"""
Stem Mixer - mixing-as-a-service backend
Downloads remote audio stems, mixes them with ffmpeg and streams back one MP3
"""

import logging
import traceback

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from backend.utils.responses import error_response
from config.settings import settings
from routers.mix_router import get_mix_service, mix_router
from routers.status_router import status_router
from utils.body_limit import BodySizeLimitMiddleware

# ============================================================================
# LOGGING
# ============================================================================

handlers = [logging.StreamHandler()]
if settings.log_file:
    settings.log_file.parent.mkdir(parents=True, exist_ok=True)
    handlers.append(logging.FileHandler(settings.log_file))

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=handlers
)
logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

app = FastAPI(title="Audio Mixing API", version=settings.service_version)


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled error: {e}\n{traceback.format_exc()}")
            return error_response("Internal server error", 500, details=str(e))


app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)

# CORS MUST be near the bottom
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# STARTUP
# ============================================================================
@app.on_event("startup")
async def prepare_scratch_dir():
    """Create the scratch directory if it doesn't exist"""
    mix_service = get_mix_service()
    mix_service.ensure_scratch_dir()
    logger.info(f"Audio Mixing API server running on port {settings.port}")
    logger.info(f"Scratch directory: {mix_service.scratch_dir.resolve()}")
    logger.info(f"Health check: http://localhost:{settings.port}/")
    logger.info(f"Mix endpoint: POST http://localhost:{settings.port}/mix")


# ============================================================================
# INCLUDE ROUTERS
# ============================================================================
app.include_router(status_router)
app.include_router(mix_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
