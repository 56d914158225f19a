"""
Mix service - drives stem downloads and the ffmpeg mixdown for one request
"""
import logging
from pathlib import Path
from typing import List, Optional

import aiofiles.os

from models.mix import MixRequest
from services.errors import CleanupError
from services.ffmpeg_mixer import FfmpegMixer
from services.stem_fetcher import StemFetcher, stem_filename

logger = logging.getLogger(__name__)


class MixJob:
    """
    Scratch state of a single mix request.

    Every scratch path is registered before it is written, so cleanup() also
    removes partial downloads and a partial ffmpeg output.
    """

    def __init__(self, request_id: str, volumes: Optional[List[float]] = None):
        self.request_id = request_id
        self.volumes: List[float] = list(volumes or [])
        self.input_files: List[Path] = []
        self.output_file: Optional[Path] = None
        self._registry: List[Path] = []

    @property
    def scratch_files(self) -> List[Path]:
        return list(self._registry)

    def register(self, path: Path) -> Path:
        self._registry.append(path)
        return path

    async def cleanup(self) -> List[CleanupError]:
        """
        Delete every registered scratch file. Safe to call more than once.

        Missing files are skipped; files that fail to delete are logged, kept
        registered, and returned.
        """
        pending, self._registry = self._registry, []
        errors = []
        for path in pending:
            try:
                await aiofiles.os.remove(path)
                logger.info(f"[{self.request_id}] Cleaned up: {path}")
            except FileNotFoundError:
                continue
            except OSError as e:
                error = CleanupError(path, e)
                logger.error(f"[{self.request_id}] {error}")
                errors.append(error)
                self._registry.append(path)
        return errors


class MixService:
    """Service for turning a validated MixRequest into a mixed MP3 on scratch storage"""

    def __init__(self, scratch_dir: Path, fetcher: StemFetcher, mixer: FfmpegMixer):
        self.scratch_dir = Path(scratch_dir)
        self.fetcher = fetcher
        self.mixer = mixer

    def ensure_scratch_dir(self) -> None:
        self.scratch_dir.mkdir(parents=True, exist_ok=True)

    def output_path(self, request_id: str) -> Path:
        return self.scratch_dir / f"{request_id}_mixed.mp3"

    async def create_mix(self, request_id: str, mix_request: MixRequest) -> MixJob:
        """
        Download every stem in order, then mix them with ffmpeg.

        Returns the job owning the mixed output; the caller must run
        job.cleanup() once the output has been delivered.

        On any failure the job's scratch files are removed before the error
        propagates.
        """
        job = MixJob(request_id, volumes=mix_request.resolved_volumes())
        total = len(mix_request.stems)

        try:
            for stem in mix_request.stems:
                path = job.register(self.scratch_dir / stem_filename(request_id, stem.index, stem.url))
                logger.info(f"[{request_id}] Downloading stem {stem.index + 1}/{total} ({stem.kind}): {stem.url}")
                await self.fetcher.fetch(stem.url, path)
                job.input_files.append(path)

            job.output_file = job.register(self.output_path(request_id))

            logger.info(f"[{request_id}] Mixing audio files...")
            await self.mixer.mix(job.input_files, job.output_file, job.volumes, request_id=request_id)
        except BaseException:
            await job.cleanup()
            raise

        logger.info(f"[{request_id}] Mix completed successfully")
        return job
