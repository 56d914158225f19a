"""
Mix Router - API endpoint for mixing remote stems into one MP3
"""
import json
import logging
import uuid
from functools import lru_cache

from fastapi import APIRouter, Depends, Request

from backend.utils.responses import ScratchFileResponse, error_response, invalid_input_response
from config.settings import settings
from models.mix import parse_mix_request
from services.errors import InvalidInput, MixError
from services.ffmpeg_mixer import FfmpegMixer
from services.mix_service import MixService
from services.stem_fetcher import StemFetcher

logger = logging.getLogger(__name__)

# Create router
mix_router = APIRouter(tags=["Mix"])


@lru_cache()
def get_mix_service() -> MixService:
    """Service instance, built once from settings"""
    return MixService(
        scratch_dir=settings.scratch_dir,
        fetcher=StemFetcher(timeout=settings.download_timeout_seconds),
        mixer=FfmpegMixer(
            binary=settings.ffmpeg_binary,
            bitrate=settings.mp3_bitrate,
            normalize=settings.mix_normalize,
        ),
    )


@mix_router.post("/mix")
async def mix_stems(request: Request, mix_service: MixService = Depends(get_mix_service)):
    """
    Mix audio stems into a single track.

    Body: {"stems": [url | {"url": url}, ...], "volumes": [float, ...]}
    Returns the MP3 as an attachment named mixed_<requestId>.mp3.
    """
    request_id = str(uuid.uuid4())
    logger.info(f"[{request_id}] Starting mix request")

    raw_body = await request.body()
    if len(raw_body) > settings.max_body_bytes:
        return error_response(
            "Request body too large",
            413,
            details=f"Body of {len(raw_body)} bytes exceeds the {settings.max_body_bytes} byte limit",
            request_id=request_id,
        )

    try:
        mix_request = parse_mix_request(json.loads(raw_body))
    except (ValueError, RecursionError):
        logger.warning(f"[{request_id}] Rejected: body is not valid JSON")
        return invalid_input_response("Request body must be valid JSON", None, request_id)
    except InvalidInput as e:
        logger.warning(f"[{request_id}] Rejected: {e}")
        return invalid_input_response(str(e), e.received, request_id)

    logger.info(f"[{request_id}] Processing {len(mix_request.stems)} stems")

    try:
        job = await mix_service.create_mix(request_id, mix_request)
    except MixError as e:
        logger.error(f"[{request_id}] Error: {e}")
        return error_response("Failed to mix audio files", 500, details=str(e), request_id=request_id)
    except Exception as e:
        logger.exception(f"[{request_id}] Unexpected error: {e}")
        return error_response("Failed to mix audio files", 500, details=str(e), request_id=request_id)

    return ScratchFileResponse(
        job.output_file,
        filename=f"mixed_{request_id}.mp3",
        cleanup=job.cleanup,
        request_id=request_id,
    )
